"""日志配置模块：统一全局日志格式与级别。"""

import logging
import logging.config
import sys
from typing import Optional

from dropx.core.config import settings


class ColorFormatter(logging.Formatter):
    """ANSI 彩色格式化器：根据不同日志级别渲染不同颜色，便于快速辨识。"""

    RESET = "\033[0m"
    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }

    def __init__(
        self,
        fmt: str,
        datefmt: Optional[str] = None,
        style: str = "%",
        use_colors: Optional[bool] = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        if use_colors is None:
            use_colors = sys.stderr.isatty()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.COLORS.get(record.levelno)
        if not self.use_colors or not color:
            return message
        return f"{color}{message}{self.RESET}"


def setup_logging(level: Optional[str] = None) -> None:
    """初始化日志系统，确保项目所有模块使用统一的输出格式与级别。"""
    level = (level or settings.LOG_LEVEL).upper()

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "()": "dropx.core.logger.ColorFormatter",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "default": {
                "level": level,
                "class": "logging.StreamHandler",
                "formatter": "standard",
            },
        },
        "loggers": {
            "dropx": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn": {"handlers": ["default"], "level": level, "propagate": False},
        },
        "root": {"handlers": ["default"], "level": level},
    })


logger = logging.getLogger("dropx")
