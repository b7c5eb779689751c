"""
Health check utilities: host metrics plus segmentation backend readiness
"""

import os
import time
from datetime import datetime
from typing import Any, Dict

import psutil
from pydantic import BaseModel

from pixelbatch.core.config import settings


class SystemHealth(BaseModel):
    """System health status model"""

    status: str
    timestamp: datetime
    uptime: float
    memory_usage: Dict[str, Any]
    disk_usage: Dict[str, Any]
    cpu_usage: float
    segmentation: Dict[str, Any]


class HealthChecker:
    """Reports host load and whether background removal can run offline"""

    def __init__(self, cpu_sample_interval: float = 0.1):
        self.start_time = time.time()
        self.cpu_sample_interval = cpu_sample_interval

    def get_memory_info(self) -> Dict[str, Any]:
        memory = psutil.virtual_memory()
        return {
            "total": memory.total,
            "available": memory.available,
            "used": memory.used,
            "percentage": memory.percent,
        }

    def get_disk_info(self, path: str = "/") -> Dict[str, Any]:
        disk = psutil.disk_usage(path)
        return {
            "path": path,
            "total": disk.total,
            "free": disk.free,
            "percentage": disk.percent,
        }

    def get_cpu_info(self) -> float:
        return psutil.cpu_percent(interval=self.cpu_sample_interval)

    def get_segmentation_info(self) -> Dict[str, Any]:
        """Backend in use and, for rembg, whether its weights are on disk"""
        info: Dict[str, Any] = {"backend": settings.segmentation_backend}
        if settings.segmentation_backend == "rembg":
            model_path = os.path.join(
                settings.rembg_model_dir, f"{settings.rembg_model}.onnx"
            )
            info["model"] = settings.rembg_model
            info["model_cached"] = os.path.exists(model_path)
        return info

    def get_system_health(self) -> SystemHealth:
        memory = self.get_memory_info()
        disk = self.get_disk_info()
        cpu = self.get_cpu_info()

        status = "healthy"
        if memory["percentage"] > 90 or disk["percentage"] > 95 or cpu > 95:
            status = "unhealthy"
        elif memory["percentage"] > 80 or disk["percentage"] > 85 or cpu > 80:
            status = "warning"

        return SystemHealth(
            status=status,
            timestamp=datetime.now(),
            uptime=time.time() - self.start_time,
            memory_usage=memory,
            disk_usage=disk,
            cpu_usage=cpu,
            segmentation=self.get_segmentation_info(),
        )


# Global health checker instance
health_checker = HealthChecker()
