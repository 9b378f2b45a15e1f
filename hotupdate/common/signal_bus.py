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
MFW-ChainFlow Assistant 信号总线
作者:overflow65537
"""
from PySide6.QtCore import Signal, QObject


class SignalBus(QObject):
    """Signal bus"""

    # 显示 InfoBar 的请求
    info_bar_requested = Signal(str, str)  # (level, message)

    # 热更新相关进度
    sync_progress = Signal(str, int)  # 进度条(phase, percent)
    update_available = Signal(str)  # 发现新版本(version)
    sync_stopped = Signal(
        int
    )  # 同步结束(0:无需更新继续启动, 1:需要重启, 2:下载失败可重试, 3:搜索路径保存失败)


signalBus = SignalBus()
