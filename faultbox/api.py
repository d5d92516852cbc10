"""
FastAPI 接口模块 - 健康检查、代理转发、故障注入
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from typing import List
import logging

from .config import Config, get_config
from .proxy import ProxyForwarder
from .simulator import MemoryGrowthSimulator, terminate_process, MB
from .status import collect_status

logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


class ActiveResponse(BaseModel):
    active: bool = True


class HealthResponse(BaseModel):
    healthy: bool = True


class ServerStatus(BaseModel):
    status: str
    uptime: str
    startTime: str


class MemoryStatus(BaseModel):
    allocatedMB: int
    totalAllocMB: int
    sysMB: int
    numGC: int


class RuntimeStatus(BaseModel):
    numThreads: int
    pythonVersion: str
    numCPU: int


class StatusResponse(BaseModel):
    """状态快照"""
    server: ServerStatus
    memory: MemoryStatus
    runtime: RuntimeStatus
    endpoints: List[str]


class CrashResponse(BaseModel):
    crashing: bool = True
    exitCode: int
    message: str


class TriggerResponse(BaseModel):
    triggered: bool = True
    chunkSizeMB: int
    message: str


def create_app(config: Config = None) -> FastAPI:
    """创建 FastAPI 应用，配置快照在此固定"""
    if config is None:
        config = get_config()

    app = FastAPI(
        title="Faultbox",
        description="容器编排故障演练用诊断服务",
        version="1.0.0"
    )
    app.state.config = config

    endpoints: List[str] = []
    forwarder = ProxyForwarder(config)

    @app.middleware("http")
    async def log_request(request: Request, call_next):
        client = f"{request.client.host}:{request.client.port}" if request.client else "-"
        logger.info(f"{client} {request.method} {request.url}")
        return await call_next(request)

    @app.get("/", response_model=ActiveResponse)
    def root():
        return ActiveResponse()

    @app.get("/healthz/", response_model=HealthResponse)
    def healthz():
        """健康检查接口"""
        return HealthResponse()

    @app.get("/hello/", response_class=PlainTextResponse)
    def hello(name: str = ""):
        return f"Hello {name}"

    endpoints.extend(["/", "/healthz/", "/hello/"])

    if config.features.enable_status_endpoint:
        @app.get("/status/", response_model=StatusResponse)
        def status():
            """运行状态（每次实时计算）"""
            return collect_status(endpoints)

        endpoints.append("/status/")
        logger.info("状态接口已启用: /status/")

    if config.features.enable_config_endpoint:
        @app.get("/config/")
        def show_config():
            """当前配置快照"""
            return config.to_dict()

        endpoints.append("/config/")
        logger.info("配置接口已启用: /config/")

    @app.api_route("/proxy/", methods=ALL_METHODS)
    async def proxy(request: Request):
        """转发到上游，原样返回上游响应体"""
        body = await request.body()
        result = await run_in_threadpool(forwarder.forward, request.method, body)
        if result.status_code == 200:
            return Response(content=result.body, status_code=200)
        headers = {"Allow": "POST"} if result.status_code == 405 else None
        return PlainTextResponse(content=result.body, status_code=result.status_code, headers=headers)

    @app.post("/crash/", response_model=CrashResponse)
    def crash():
        """返回确认后退出进程"""
        exit_code = config.simulation.crash_exit_code
        logger.warning(f"收到崩溃请求，响应发送后以状态码 {exit_code} 退出")
        payload = CrashResponse(exitCode=exit_code, message="process will exit after this response")
        return JSONResponse(
            content=payload.model_dump(),
            background=BackgroundTask(terminate_process, exit_code)
        )

    @app.api_route("/trigger/", methods=ALL_METHODS, response_model=TriggerResponse)
    def trigger():
        """启动后台内存增长，立即返回"""
        chunk_mb = config.simulation.memory_chunk_mb
        simulator = MemoryGrowthSimulator(
            chunk_size_bytes=chunk_mb * MB,
            interval_seconds=config.simulation.memory_chunk_interval_seconds
        )
        simulator.start()
        logger.warning(f"内存增长模拟已启动，块大小 {chunk_mb} MB")
        return TriggerResponse(chunkSizeMB=chunk_mb, message="memory growth started; it only stops when the process dies")

    endpoints.extend(["/proxy/", "/crash/", "/trigger/"])

    return app
