"""
Faultbox - 容器编排故障演练用诊断 HTTP 服务
"""
__version__ = "1.0.0"
