"""
Faultbox - 主入口
加载配置快照后启动 API 服务
"""
import sys
import logging
import argparse

import uvicorn

from .config import init_config
from .api import create_app


def setup_logging(log_level: str = "INFO"):
    """配置日志"""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


UVICORN_LOG_LEVELS = ("critical", "error", "warning", "info", "debug", "trace")


def uvicorn_log_level(log_level: str) -> str:
    """uvicorn 只接受固定的级别名，其余一律按 info 处理"""
    level = log_level.lower()
    if level == "warn":
        return "warning"
    return level if level in UVICORN_LOG_LEVELS else "info"


def main(argv=None):
    """主入口函数"""
    parser = argparse.ArgumentParser(description='Faultbox - 容器故障演练诊断服务')
    parser.add_argument('--host', type=str, default='0.0.0.0', help='监听地址')
    parser.add_argument('--port', type=int, help='监听端口（覆盖配置）')
    parser.add_argument('--log-level', type=str, help='日志级别（覆盖配置）')

    args = parser.parse_args(argv)

    # 先以 INFO 级别记录配置解析过程
    setup_logging("INFO")
    config = init_config()

    log_level = args.log_level or config.server.log_level
    port = args.port or config.server.port
    logging.getLogger().setLevel(getattr(logging, log_level.upper(), logging.INFO))

    logger = logging.getLogger(__name__)
    logger.info("=" * 50)
    logger.info("Faultbox 启动中...")
    logger.info(f"  端口: {port}")
    logger.info(f"  日志级别: {log_level}")
    logger.info(f"  代理默认上游: {config.proxy.default_host}")
    logger.info("=" * 50)

    app = create_app(config)

    logger.info(f"API 服务启动: http://{args.host}:{port}")
    uvicorn.run(
        app,
        host=args.host,
        port=port,
        log_level=uvicorn_log_level(log_level)
    )


if __name__ == "__main__":
    main()
