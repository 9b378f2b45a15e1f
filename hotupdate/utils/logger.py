#   This file is part of MFW-ChainFlow Assistant.

#   MFW-ChainFlow Assistant is free software: you can redistribute it and/or modify
#   it under the terms of the GNU General Public License as published
#   by the Free Software Foundation, either version 3 of the License,
#   or (at your option) any later version.

#   MFW-ChainFlow Assistant is distributed in the hope that it will be useful,
#   but WITHOUT ANY WARRANTY; without even the implied warranty
#   of MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See
#   the GNU General Public License for more details.

#   You should have received a copy of the GNU General Public License
#   along with MFW-ChainFlow Assistant. If not, see <https://www.gnu.org/licenses/>.

#   Contact: err.overflow@gmail.com
#   Copyright (C) 2024-2025  MFW-ChainFlow Assistant. All rights reserved.

"""
MFW-ChainFlow Assistant
MFW-ChainFlow Assistant 日志单元
作者:overflow65537
"""

import logging
import os

from logging.handlers import TimedRotatingFileHandler

from hotupdate.common.constants import DEFAULT_LOG_PATH

LOG_FORMAT = "[%(asctime)s][%(levelname)s][%(filename)s][L%(lineno)d][%(funcName)s] | %(message)s"

# 本单元添加的处理器带有该标记，宿主程序自己的处理器不受影响
_HANDLER_MARK = "_hotupdate_handler"


class LoggerManager:
    """
    热更新日志管理。

    日志写入根日志记录器：按天轮换的文件处理器 + 控制台处理器。
    宿主程序可以在读取配置后通过 change_log_path 切换日志文件。
    """

    def __init__(self, log_file_path: str = DEFAULT_LOG_PATH):
        self.log_file_path = ""
        self.logger = self._create_logger(log_file_path)
        # 关闭requests模块的日志输出
        logging.getLogger("urllib3").setLevel(logging.CRITICAL)

    @staticmethod
    def _owned_handlers(root_logger: logging.Logger) -> list[logging.Handler]:
        return [h for h in root_logger.handlers if getattr(h, _HANDLER_MARK, False)]

    def _create_logger(self, log_file_path: str) -> logging.Logger:
        root_logger = logging.getLogger()
        for handler in self._owned_handlers(root_logger):
            handler.close()
            root_logger.removeHandler(handler)

        if log_dir := os.path.dirname(log_file_path):
            os.makedirs(log_dir, exist_ok=True)

        file_handler = TimedRotatingFileHandler(
            log_file_path,
            when="midnight",
            backupCount=3,
            encoding="utf-8",
        )
        stream_handler = logging.StreamHandler()

        formatter = logging.Formatter(LOG_FORMAT)
        for handler in (file_handler, stream_handler):
            handler.setFormatter(formatter)
            setattr(handler, _HANDLER_MARK, True)
            root_logger.addHandler(handler)

        root_logger.setLevel(logging.DEBUG)
        self.log_file_path = log_file_path
        return root_logger

    def change_log_path(self, new_log_path: str) -> bool:
        """
        在运行时更改日志的存放位置。

        Returns:
            bool: 路径未变化时返回 False，不会重建处理器
        """
        if os.path.abspath(new_log_path) == os.path.abspath(self.log_file_path):
            return False
        self.logger = self._create_logger(new_log_path)
        self.logger.info("日志文件切换到: %s", new_log_path)
        return True


logger_manager = LoggerManager()
logger = logger_manager.logger
