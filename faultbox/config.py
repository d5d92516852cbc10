"""
配置加载模块

优先级: 内置默认值 < 配置文件 (CONFIG_FILE_PATH) < 环境变量
"""
import os
import json
import logging
import warnings
from dataclasses import dataclass, field, replace
from typing import Dict, Any, Mapping, Optional

logger = logging.getLogger(__name__)


CONFIG_FILE_ENV = "CONFIG_FILE_PATH"


class ConfigLoadWarning(UserWarning):
    """配置文件缺失/不可读/格式错误，回退到默认值"""


@dataclass(frozen=True)
class ServerConfig:
    port: int = 9090
    log_level: str = "info"


@dataclass(frozen=True)
class ProxyConfig:
    default_host: str = "http://postman-echo.com"
    default_path: str = "get?foo1=bar1&foo2=bar2"
    request_timeout_seconds: int = 30


@dataclass(frozen=True)
class FeaturesConfig:
    enable_status_endpoint: bool = True
    enable_config_endpoint: bool = True


@dataclass(frozen=True)
class SimulationConfig:
    """故障模拟配置"""
    memory_chunk_mb: int = 500
    memory_chunk_interval_seconds: float = 0
    crash_exit_code: int = 1


@dataclass(frozen=True)
class ConfigSource:
    config_file_path: str = ""
    loaded_from_file: bool = False


@dataclass(frozen=True)
class Config:
    """配置快照，启动时创建一次，之后只读"""
    server: ServerConfig = field(default_factory=ServerConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    features: FeaturesConfig = field(default_factory=FeaturesConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    source: ConfigSource = field(default_factory=ConfigSource)

    def to_dict(self) -> Dict[str, Any]:
        """按对外 JSON 字段名导出"""
        return {
            "server": {
                "port": self.server.port,
                "logLevel": self.server.log_level,
            },
            "proxy": {
                "defaultHost": self.proxy.default_host,
                "defaultPath": self.proxy.default_path,
                "requestTimeoutSeconds": self.proxy.request_timeout_seconds,
            },
            "features": {
                "enableStatusEndpoint": self.features.enable_status_endpoint,
                "enableConfigEndpoint": self.features.enable_config_endpoint,
            },
            "simulation": {
                "memoryChunkMB": self.simulation.memory_chunk_mb,
                "memoryChunkIntervalSeconds": self.simulation.memory_chunk_interval_seconds,
                "crashExitCode": self.simulation.crash_exit_code,
            },
            "configSource": {
                "filePathEnvVar": self.source.config_file_path,
                "loadedFromFile": self.source.loaded_from_file,
            },
        }


def _positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _non_negative_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


def _exit_code(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 255


def _is_str(value) -> bool:
    return isinstance(value, str)


def _is_bool(value) -> bool:
    return isinstance(value, bool)


# 配置文件字段: (分组, JSON 键) -> (dataclass 属性, 校验函数)
FILE_FIELDS = {
    ("server", "port"): ("port", _positive_int),
    ("server", "logLevel"): ("log_level", _is_str),
    ("proxy", "defaultHost"): ("default_host", _is_str),
    ("proxy", "defaultPath"): ("default_path", _is_str),
    ("proxy", "requestTimeoutSeconds"): ("request_timeout_seconds", _positive_int),
    ("features", "enableStatusEndpoint"): ("enable_status_endpoint", _is_bool),
    ("features", "enableConfigEndpoint"): ("enable_config_endpoint", _is_bool),
    ("simulation", "memoryChunkMB"): ("memory_chunk_mb", _positive_int),
    ("simulation", "memoryChunkIntervalSeconds"): ("memory_chunk_interval_seconds", _non_negative_number),
    ("simulation", "crashExitCode"): ("crash_exit_code", _exit_code),
}

GROUPS = ("server", "proxy", "features", "simulation")


def _parse_int(raw: str, check=_positive_int) -> Optional[int]:
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if check(value) else None


def _parse_float(raw: str) -> Optional[float]:
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value >= 0 else None


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() == "true"


# 环境变量 -> (分组, 属性, 解析函数)；解析失败返回 None 表示忽略
ENV_OVERRIDES = {
    "SERVER_PORT": ("server", "port", _parse_int),
    "LOG_LEVEL": ("server", "log_level", str),
    "PROXY_DEFAULT_HOST": ("proxy", "default_host", str),
    "PROXY_DEFAULT_PATH": ("proxy", "default_path", str),
    "REQUEST_TIMEOUT": ("proxy", "request_timeout_seconds", _parse_int),
    "ENABLE_STATUS_ENDPOINT": ("features", "enable_status_endpoint", _parse_bool),
    "ENABLE_CONFIG_ENDPOINT": ("features", "enable_config_endpoint", _parse_bool),
    "MEMORY_CHUNK_MB": ("simulation", "memory_chunk_mb", _parse_int),
    "MEMORY_CHUNK_INTERVAL": ("simulation", "memory_chunk_interval_seconds", _parse_float),
    "CRASH_EXIT_CODE": ("simulation", "crash_exit_code", lambda raw: _parse_int(raw, _exit_code)),
}


def _warn(message: str):
    logger.warning(message)
    warnings.warn(message, ConfigLoadWarning, stacklevel=3)


def load_config_file(path: str) -> Optional[Dict[str, Dict[str, Any]]]:
    """
    读取并校验配置文件

    返回 {分组: {属性: 值}}；文件不可读或格式错误时发出 ConfigLoadWarning 并返回 None
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
        data = json.loads(text) if text.strip() else None
    except OSError as e:
        _warn(f"配置文件读取失败 {path}: {e}")
        return None
    except ValueError as e:
        _warn(f"配置文件解析失败 {path}: {e}")
        return None

    if data is None:
        data = {}
    if not isinstance(data, dict):
        _warn(f"配置文件解析失败 {path}: 顶层必须是对象")
        return None

    overlay: Dict[str, Dict[str, Any]] = {}
    for group in GROUPS:
        section = data.get(group, {})
        if section is None:
            continue
        if not isinstance(section, dict):
            _warn(f"配置文件解析失败 {path}: '{group}' 必须是对象")
            return None
        for key, value in section.items():
            field_def = FILE_FIELDS.get((group, key))
            if field_def is None:
                continue
            attr, check = field_def
            if not check(value):
                _warn(f"配置文件解析失败 {path}: {group}.{key} 取值无效: {value!r}")
                return None
            overlay.setdefault(group, {})[attr] = value
    return overlay


def _apply(config: Config, group: str, values: Dict[str, Any]) -> Config:
    return replace(config, **{group: replace(getattr(config, group), **values)})


def resolve_config(environ: Mapping[str, str] = None) -> Config:
    """合并默认值、配置文件和环境变量，生成配置快照"""
    if environ is None:
        environ = os.environ

    config = Config()

    config_path = environ.get(CONFIG_FILE_ENV, "")
    loaded = False
    if config_path:
        logger.info(f"从配置文件加载: {config_path}")
        overlay = load_config_file(config_path)
        if overlay is not None:
            for group, values in overlay.items():
                config = _apply(config, group, values)
            loaded = True
            logger.info("配置文件加载成功")

    for env_name, (group, attr, parse) in ENV_OVERRIDES.items():
        raw = environ.get(env_name, "")
        if not raw:
            continue
        value = parse(raw)
        if value is None:
            logger.warning(f"忽略无效的环境变量 {env_name}={raw!r}")
            continue
        config = _apply(config, group, {attr: value})
        logger.info(f"环境变量 {env_name} 覆盖 {group}.{attr}: {value}")

    return replace(config, source=ConfigSource(config_file_path=config_path, loaded_from_file=loaded))


# 全局配置实例
_config: Config = None


def get_config() -> Config:
    """获取全局配置"""
    global _config
    if _config is None:
        _config = resolve_config()
    return _config


def init_config(environ: Mapping[str, str] = None) -> Config:
    """初始化配置"""
    global _config
    _config = resolve_config(environ)
    return _config
