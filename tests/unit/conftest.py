#!/usr/bin/env python3
"""
pytest 配置文件

提供共享的 fixtures 和配置
"""
import sys
import json
import pytest
from pathlib import Path

# 添加项目路径
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from faultbox.config import ENV_OVERRIDES, CONFIG_FILE_ENV


@pytest.fixture(autouse=True)
def reset_config():
    """每个测试前重置配置"""
    import faultbox.config as config_module
    config_module._config = None
    yield
    config_module._config = None


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """清除会影响配置解析的环境变量"""
    for name in list(ENV_OVERRIDES) + [CONFIG_FILE_ENV]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    """写入 JSON 配置文件并返回路径"""
    def _write(data, name="config.json"):
        path = tmp_path / name
        if isinstance(data, str):
            path.write_text(data, encoding="utf-8")
        else:
            path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)
    return _write


@pytest.fixture
def sample_file_config():
    """示例配置文件内容"""
    return {
        "server": {"port": 8081, "logLevel": "debug"},
        "proxy": {
            "defaultHost": "http://upstream.internal/",
            "defaultPath": "/api/ping",
            "requestTimeoutSeconds": 5
        },
        "features": {"enableStatusEndpoint": False}
    }
