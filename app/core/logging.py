import logging
import sys

from loguru import logger

from app.core.config import settings


class InterceptHandler(logging.Handler):
    """把標準 logging 的紀錄轉送到 loguru（uvicorn / sqlalchemy / 各模組共用同一個輸出）"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # 往回找到真正呼叫 logging 的 frame，讓 loguru 顯示正確來源
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging():
    logger.remove()
    logger.add(sys.stdout, level=settings.LOG_LEVEL,
               backtrace=True, diagnose=False,
               format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level}</level> | {name} | {message}")
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    return logger
