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
MFW-ChainFlow Assistant 热更新控制器
作者:overflow65537
"""

import asyncio
from enum import IntEnum
from typing import Callable, Coroutine, Optional

from PySide6.QtCore import QObject, Signal, SignalInstance

from hotupdate.common.config import cfg
from hotupdate.common.signal_bus import signalBus
from hotupdate.core.errors import PersistFailed
from hotupdate.core.manifest import ManifestStore
from hotupdate.core.search_paths import ConfigSearchPathStorage, SearchPathPersister
from hotupdate.core.session import (
    ProgressEvent,
    SessionState,
    SyncPhase,
    UpdateSession,
)
from hotupdate.core.subscription import Subscription
from hotupdate.core.verifier import AssetVerifier, create_verifier
from hotupdate.utils.logger import logger, logger_manager
from hotupdate.utils.transport import HttpTransport


class SyncOutcome(IntEnum):
    """同步结束时通知界面的结果"""

    PROCEED_WITHOUT_UPDATE = 0  # 无需更新或检查失败，继续启动
    RESTART_REQUIRED = 1  # 更新完成，需要重启
    FAILED = 2  # 部分资源失败，可调用 retry()
    PERSIST_FAILED = 3  # 更新已下载但搜索路径/清单未能保存，不能重启


class SyncController(QObject):
    """
    热更新对外入口。

    - check()/start_sync(): 检查更新，发现新版本且 auto_update 开启时直接下载
    - update(): 在 UPDATE_AVAILABLE 状态下开始下载
    - retry()/retry_sync(): 在 FAILED 状态下重试失败的资源
    - abandon(): 放弃当前会话，不再发出任何进度或结束信号

    同一时间最多只有一个会话任务在运行，运行期间的 check/update/retry 调用会被忽略。
    所有方法都需要在 asyncio 事件循环中调用。
    """

    restart_requested = Signal(list)  # 新的搜索路径

    def __init__(
        self,
        store: ManifestStore,
        persister: SearchPathPersister,
        verifier: AssetVerifier | None = None,
        *,
        progress_signal: Optional[SignalInstance] = None,
        stop_signal: Optional[SignalInstance] = None,
        info_bar_signal: Optional[SignalInstance] = None,
        update_available_signal: Optional[SignalInstance] = None,
        restart_handler: Callable[[list], None] | None = None,
        manifest_url: str | None = None,
        entry_url: str | None = None,
        auto_update: bool = True,
        max_concurrent: int = 0,
        auto_retry_limit: int = 0,
        retry_backoff: float = 2.0,
        parent: QObject | None = None,
    ):
        """
        Args:
            store: 清单存取
            persister: 搜索路径持久化
            verifier: 资源校验策略，默认全部接受
            progress_signal: 进度信号 (phase, percent)
            stop_signal: 结束信号，载荷为 SyncOutcome
            info_bar_signal: InfoBar 提示信号 (level, message)
            update_available_signal: 发现新版本信号 (version)
            restart_handler: 搜索路径提交后由宿主执行重启，每个会话最多调用一次
            manifest_url: 覆盖本地清单中的远程清单地址
            entry_url: 入口文档地址
            auto_update: 发现新版本后是否自动下载
            max_concurrent: 同时下载的资源数，0 为不限制
            auto_retry_limit: 失败后自动重试的次数
            retry_backoff: 自动重试的初始等待秒数，之后每次翻倍
        """
        super().__init__(parent)
        self.store = store
        self.persister = persister
        self.verifier = verifier or AssetVerifier()

        if progress_signal is None:
            progress_signal = signalBus.sync_progress
        if stop_signal is None:
            stop_signal = signalBus.sync_stopped
        if info_bar_signal is None:
            info_bar_signal = signalBus.info_bar_requested
        if update_available_signal is None:
            update_available_signal = signalBus.update_available
        self.progress_signal = progress_signal
        self.stop_signal = stop_signal
        self.info_bar_signal = info_bar_signal
        self.update_available_signal = update_available_signal
        self._restart_handler = restart_handler

        self.manifest_url = manifest_url
        self.entry_url = entry_url
        self.auto_update = auto_update
        self.max_concurrent = max_concurrent
        self.auto_retry_limit = auto_retry_limit
        self.retry_backoff = retry_backoff

        self._session: UpdateSession | None = None
        self._task: asyncio.Task | None = None
        self._restart_subscription: Subscription | None = None
        self._outcome_reported = False
        self._auto_retries = 0

        self.search_paths: list[str] | None = None
        self.last_progress: ProgressEvent | None = None

    @classmethod
    def from_config(
        cls,
        restart_handler: Callable[[list], None] | None = None,
        parent: QObject | None = None,
    ) -> "SyncController":
        """按全局配置创建控制器，同时应用配置中的日志路径"""
        logger_manager.change_log_path(cfg.get(cfg.log_path))
        transport = HttpTransport.from_config()
        store = ManifestStore(
            transport, cfg.get(cfg.bundled_manifest), cfg.get(cfg.storage_path)
        )
        return cls(
            store,
            SearchPathPersister(ConfigSearchPathStorage(cfg)),
            create_verifier(cfg.get(cfg.verify_checksum)),
            restart_handler=restart_handler,
            manifest_url=cfg.get(cfg.manifest_url) or None,
            entry_url=cfg.get(cfg.entry_url) or None,
            auto_update=cfg.get(cfg.auto_update),
            max_concurrent=cfg.get(cfg.max_concurrent_tasks),
            auto_retry_limit=cfg.get(cfg.auto_retry_limit),
            retry_backoff=cfg.get(cfg.retry_backoff),
            parent=parent,
        )

    # region 状态
    @property
    def session(self) -> UpdateSession | None:
        return self._session

    @property
    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.IDLE
        return self._session.state

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # endregion

    # region 对外接口
    def check(self) -> asyncio.Task | None:
        if self.is_running():
            logger.warning("检测到同步任务重复运行请求，本次调用将被忽略")
            return None
        loop = asyncio.get_running_loop()
        session = self._begin_session()
        return self._spawn(loop, session, self._run_check(session))

    def update(self) -> asyncio.Task | None:
        session = self._session
        if self.is_running() or session is None:
            logger.debug("当前没有可下载的会话，忽略 update()")
            return None
        if session.state is not SessionState.UPDATE_AVAILABLE:
            logger.debug("会话状态为 %s，忽略 update()", session.state.value)
            return None
        loop = asyncio.get_running_loop()
        return self._spawn(loop, session, self._run_download(session, retry=False))

    def retry(self) -> asyncio.Task | None:
        session = self._session
        if self.is_running() or session is None:
            logger.debug("当前没有可重试的会话，忽略 retry()")
            return None
        if session.state is not SessionState.FAILED or not session.retry_allowed:
            logger.debug("会话状态为 %s，忽略 retry()", session.state.value)
            return None
        loop = asyncio.get_running_loop()
        return self._spawn(loop, session, self._run_download(session, retry=True))

    # 界面层使用的别名
    start_sync = check
    retry_sync = retry

    def abandon(self) -> None:
        """放弃当前会话，取消未完成的网络操作"""
        task = self._task
        if task is not None and not task.done():
            logger.info("放弃当前同步会话")
            task.cancel()
        self._task = None
        self._end_session()

    # endregion

    # region 会话
    def _begin_session(self) -> UpdateSession:
        self._end_session()
        self._outcome_reported = False
        self._auto_retries = 0
        self.last_progress = None
        session = UpdateSession(
            self.store, self.verifier, self.max_concurrent, parent=self
        )
        self._session = session
        if self._restart_handler is not None:
            self._restart_subscription = Subscription(
                self.restart_requested, self._restart_handler, once=True
            ).attach()

        logger.info("=" * 50)
        logger.info("开始热更新检查")
        logger.info("存储目录: %s", self.store.storage_path)
        logger.info("远程清单: %s", self.manifest_url or "使用本地清单配置")
        logger.info("入口文档: %s", self.entry_url or "无")
        logger.info("=" * 50)
        return session

    def _end_session(self) -> None:
        if self._session is not None:
            self._session.cancel()
        if self._restart_subscription is not None:
            self._restart_subscription.release()
            self._restart_subscription = None
        self._session = None

    def _spawn(
        self,
        loop: asyncio.AbstractEventLoop,
        session: UpdateSession,
        coro: Coroutine,
    ) -> asyncio.Task:
        self._task = loop.create_task(self._guarded(session, coro))
        return self._task

    async def _guarded(self, session: UpdateSession, coro: Coroutine) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            logger.info("同步任务已取消")
            raise
        except Exception as e:
            logger.exception("同步过程中发生未预期错误: %s", e)
            # 检查阶段的异常同样不阻塞启动
            if session.state in (SessionState.IDLE, SessionState.CHECKING):
                outcome = SyncOutcome.PROCEED_WITHOUT_UPDATE
            else:
                outcome = SyncOutcome.FAILED
            self._stop_with_notice(session, outcome, "error", str(e))
            self._end_session()

    def _on_progress(self, phase: str, percent: int) -> None:
        self.last_progress = ProgressEvent(SyncPhase(phase), percent)
        self.progress_signal.emit(phase, percent)

    def _stop_with_notice(
        self,
        session: UpdateSession,
        outcome: SyncOutcome,
        level: str | None = None,
        message: str | None = None,
    ) -> None:
        """统一处理结束信号和可选的 InfoBar 通知。"""
        if session is not self._session:
            return
        if outcome is not SyncOutcome.FAILED:
            if self._outcome_reported:
                return
            self._outcome_reported = True
        if level and message:
            self.info_bar_signal.emit(level, message)
        logger.info("同步结束: %s", outcome.name)
        self.stop_signal.emit(int(outcome))

    async def _run_check(self, session: UpdateSession) -> None:
        with Subscription(session.progress, self._on_progress):
            state = await session.check(self.manifest_url, self.entry_url)

        if state is SessionState.UP_TO_DATE:
            self._stop_with_notice(session, SyncOutcome.PROCEED_WITHOUT_UPDATE)
            self._end_session()
            return
        if state is SessionState.ERROR:
            self._stop_with_notice(
                session,
                SyncOutcome.PROCEED_WITHOUT_UPDATE,
                "warning",
                f"Update check failed, continue without update: {session.error}",
            )
            self._end_session()
            return

        assert session.remote_manifest is not None
        self.update_available_signal.emit(session.remote_manifest.version)
        if not self.auto_update:
            logger.info("自动更新已关闭，等待调用 update()")
            return
        await self._run_download(session, retry=False)

    async def _run_download(self, session: UpdateSession, retry: bool) -> None:
        with Subscription(session.progress, self._on_progress):
            if retry:
                state = await session.retry()
            else:
                state = await session.download()
            while (
                state is SessionState.FAILED
                and self._auto_retries < self.auto_retry_limit
            ):
                self._auto_retries += 1
                delay = self.retry_backoff * 2 ** (self._auto_retries - 1)
                logger.info(
                    "第 %d 次自动重试，等待 %.1f 秒", self._auto_retries, delay
                )
                await asyncio.sleep(delay)
                state = await session.retry()

        if state is SessionState.FAILED:
            self._stop_with_notice(
                session,
                SyncOutcome.FAILED,
                "error",
                f"{len(session.failed)} asset(s) failed to update, retry available",
            )
            return
        self._complete(session)

    def _complete(self, session: UpdateSession) -> None:
        """移入暂存资源并提交新的搜索路径，成功后通知重启"""
        try:
            session.install()
            search_paths = self.persister.commit(session.new_search_roots())
            session.finalize()
        except PersistFailed as e:
            self._stop_with_notice(
                session,
                SyncOutcome.PERSIST_FAILED,
                "error",
                f"Update downloaded but could not be saved: {e}",
            )
            self._end_session()
            return

        self.search_paths = search_paths
        self._stop_with_notice(session, SyncOutcome.RESTART_REQUIRED)
        self.restart_requested.emit(search_paths)
        self._end_session()

    # endregion
