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
MFW-ChainFlow Assistant 信号订阅
作者:overflow65537
"""

from typing import Callable

from PySide6.QtCore import SignalInstance


class Subscription:
    """
    作用域内有效的信号连接。

    with Subscription(session.progress, handler):
        await session.download()

    离开 with 块时（正常结束、异常或任务被取消）自动断开连接，
    once=True 时槽函数最多被调用一次，首次调用后立即断开。
    """

    def __init__(self, signal: SignalInstance, slot: Callable, once: bool = False):
        self._signal = signal
        self._slot = slot
        self._once = once
        self._connected = False
        self._fired = False
        self._handler = self._dispatch

    @property
    def active(self) -> bool:
        return self._connected

    def _dispatch(self, *args):
        if self._once:
            if self._fired:
                return
            self._fired = True
            self.release()
        self._slot(*args)

    def attach(self) -> "Subscription":
        if not self._connected:
            self._signal.connect(self._handler)
            self._connected = True
        return self

    def release(self):
        if self._connected:
            self._connected = False
            self._signal.disconnect(self._handler)

    def __enter__(self) -> "Subscription":
        return self.attach()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
