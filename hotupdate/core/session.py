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
MFW-ChainFlow Assistant 更新会话
作者:overflow65537
"""

import asyncio
import contextlib
import shutil
import threading
import uuid
from enum import Enum
from pathlib import Path
from typing import NamedTuple

from PySide6.QtCore import QObject, Signal

from hotupdate.common.constants import STAGING_SUFFIX, TEMP_SUFFIX
from hotupdate.core.errors import (
    AssetDecompressFailed,
    AssetError,
    AssetTransportFailed,
    AssetVerifyRejected,
    InvalidStateError,
    ManifestFetchFailed,
    ManifestMissing,
    PersistFailed,
    SyncError,
    TransportError,
)
from hotupdate.core.manifest import AssetEntry, Manifest, ManifestStore, versions_match
from hotupdate.core.verifier import AssetVerifier
from hotupdate.utils.archive import extract_archive
from hotupdate.utils.logger import logger


class SessionState(Enum):
    IDLE = "idle"
    CHECKING = "checking"
    UP_TO_DATE = "up_to_date"
    ERROR = "error"
    UPDATE_AVAILABLE = "update_available"
    DOWNLOADING = "downloading"
    FINISHED = "finished"
    FAILED = "failed"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.CHECKING}),
    SessionState.CHECKING: frozenset(
        {SessionState.UP_TO_DATE, SessionState.ERROR, SessionState.UPDATE_AVAILABLE}
    ),
    SessionState.UPDATE_AVAILABLE: frozenset({SessionState.DOWNLOADING}),
    SessionState.DOWNLOADING: frozenset({SessionState.FINISHED, SessionState.FAILED}),
    SessionState.FAILED: frozenset({SessionState.DOWNLOADING}),
}


class SyncPhase(Enum):
    CHECKING = "checking"
    UPDATING = "updating"


class ProgressEvent(NamedTuple):
    phase: SyncPhase
    percent: int


class UpdateSession(QObject):
    """
    一次检查/更新流程的状态机。

    IDLE -> CHECKING -> {UP_TO_DATE, ERROR, UPDATE_AVAILABLE}
    UPDATE_AVAILABLE -> DOWNLOADING -> {FINISHED, FAILED}
    FAILED -> DOWNLOADING (仅重试失败的资源)

    下载结果先写入暂存目录，FINISHED 之后由 install() 一次性移入存储目录，
    FAILED 或被放弃的会话不会改动存储目录中的内容。

    非法的状态转换抛出 InvalidStateError。
    """

    progress = Signal(str, int)  # (phase, percent)
    state_changed = Signal(str)  # SessionState.value

    def __init__(
        self,
        store: ManifestStore,
        verifier: AssetVerifier | None = None,
        max_concurrent: int = 0,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self.store = store
        self.transport = store.transport
        self.storage_path = store.storage_path
        self.verifier = verifier or AssetVerifier()
        self.max_concurrent = max_concurrent

        # 每个会话独立的停止信号与暂存目录，放弃的会话不会影响之后的会话
        self.stop_event = threading.Event()
        resolved_storage = self.storage_path.resolve()
        self.staging_root = resolved_storage.with_name(
            resolved_storage.name + STAGING_SUFFIX
        )
        self.staging_path = self.staging_root / uuid.uuid4().hex
        self.installed = False

        self._state = SessionState.IDLE
        self.local_manifest: Manifest | None = None
        self.remote_manifest: Manifest | None = None
        self.error: SyncError | None = None

        self.completed = 0
        self.total = 0
        self.failed: list[AssetEntry] = []
        self.errors: dict[str, AssetError] = {}
        self.retry_allowed = False
        self.download_attempts = 0
        self._last_percent: dict[SyncPhase, int] = {}

    @property
    def state(self) -> SessionState:
        return self._state

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in _TRANSITIONS.get(self._state, frozenset()):
            raise InvalidStateError(
                f"illegal transition {self._state.value} -> {new_state.value}"
            )
        logger.debug("会话状态: %s -> %s", self._state.value, new_state.value)
        self._state = new_state
        self.state_changed.emit(new_state.value)

    def _emit_progress(self, phase: SyncPhase, percent: int) -> None:
        percent = max(0, min(100, int(percent)))
        # 同一阶段内进度不回退
        percent = max(percent, self._last_percent.get(phase, 0))
        self._last_percent[phase] = percent
        self.progress.emit(phase.value, percent)

    # region 检查
    async def check(
        self, manifest_url: str | None = None, entry_url: str | None = None
    ) -> SessionState:
        """
        检查远程版本。

        Args:
            manifest_url: 远程清单地址，为空时使用本地清单中的 remoteManifestUrl
            entry_url: 入口文档地址，设置后以入口文档给出的清单地址为准

        Returns:
            SessionState: UP_TO_DATE、ERROR 或 UPDATE_AVAILABLE
        """
        self._transition(SessionState.CHECKING)
        self._emit_progress(SyncPhase.CHECKING, 0)

        self.local_manifest = self.store.load_local()
        if self.local_manifest is None:
            self.error = ManifestMissing("local manifest not found")
            self._transition(SessionState.ERROR)
            return self._state
        local = self.local_manifest

        try:
            if entry_url:
                manifest_url = await self.store.fetch_entry_url(entry_url)
            url = manifest_url or local.remote_manifest_url
            if not url:
                raise ManifestMissing("no remote manifest url")

            if local.remote_version_url:
                remote_version = await self.store.fetch_remote_version(
                    local.remote_version_url
                )
                if versions_match(local, remote_version):
                    logger.info("版本文件显示当前已是最新版本: %s", remote_version)
                    self._emit_progress(SyncPhase.CHECKING, 100)
                    self._transition(SessionState.UP_TO_DATE)
                    return self._state
                self._emit_progress(SyncPhase.CHECKING, 50)

            self.remote_manifest = await self.store.fetch_remote(url)
        except (ManifestMissing, ManifestFetchFailed) as e:
            logger.warning("检查更新失败，跳过更新: %s", e)
            self.error = e
            self._transition(SessionState.ERROR)
            return self._state

        self._emit_progress(SyncPhase.CHECKING, 100)
        if versions_match(local, self.remote_manifest.version):
            logger.info("当前已是最新版本: %s", local.version)
            self._transition(SessionState.UP_TO_DATE)
        else:
            logger.info(
                "发现新版本: %s -> %s", local.version, self.remote_manifest.version
            )
            self._transition(SessionState.UPDATE_AVAILABLE)
        return self._state

    # endregion

    # region 下载
    async def download(self) -> SessionState:
        """下载差异资源到暂存目录，返回 FINISHED 或 FAILED"""
        if self._state is not SessionState.UPDATE_AVAILABLE:
            raise InvalidStateError(f"cannot download in state {self._state.value}")
        assert self.remote_manifest is not None
        batch = self.remote_manifest.diff(self.local_manifest)
        self.completed = 0
        self.total = len(batch)
        logger.info("需要更新的资源数: %d", self.total)
        self._discard_stale_staging()
        return await self._run_batch(batch)

    async def retry(self) -> SessionState:
        """只重新下载上一次失败的资源，已成功的资源保留在暂存目录中"""
        if self._state is not SessionState.FAILED or not self.retry_allowed:
            raise InvalidStateError(f"cannot retry in state {self._state.value}")
        self.retry_allowed = False
        batch = list(self.failed)
        logger.info("重试失败的资源: %s", [entry.path for entry in batch])
        return await self._run_batch(batch)

    def cancel(self) -> None:
        """通知本会话仍在线程中运行的下载尽快停止"""
        self.stop_event.set()

    async def _run_batch(self, batch: list[AssetEntry]) -> SessionState:
        self._transition(SessionState.DOWNLOADING)
        self.failed = []
        self.errors = {}
        self.download_attempts += 1

        if not batch:
            self._emit_progress(SyncPhase.UPDATING, 100)
            self._transition(SessionState.FINISHED)
            return self._state

        if self.max_concurrent > 0:
            limiter = asyncio.Semaphore(self.max_concurrent)
        else:
            limiter = contextlib.nullcontext()

        tasks = [
            asyncio.ensure_future(self._fetch_asset(entry, limiter)) for entry in batch
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                entry, error = await next_done
                if error is None:
                    self.completed += 1
                else:
                    logger.warning("资源更新失败: %s", error)
                    self.failed.append(entry)
                    self.errors[entry.path] = error
                self._emit_progress(
                    SyncPhase.UPDATING, self.completed * 100 // self.total
                )
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        if self.failed:
            logger.warning(
                "本次下载失败 %d/%d 个资源", len(self.failed), len(batch)
            )
            self._transition(SessionState.FAILED)
            self.retry_allowed = True
        else:
            logger.info("资源下载完成，共 %d 个", self.total)
            self._transition(SessionState.FINISHED)
        return self._state

    def _discard_stale_staging(self) -> None:
        """清理之前被放弃或失败的会话留下的暂存目录"""
        if not self.staging_root.is_dir():
            return
        for stale in self.staging_root.iterdir():
            if stale == self.staging_path:
                continue
            try:
                if stale.is_dir():
                    shutil.rmtree(stale)
                else:
                    stale.unlink()
            except OSError as e:
                logger.warning("无法清理旧的暂存目录 %s: %s", stale, e)

    def _resolve_target(self, entry: AssetEntry) -> Path:
        root = self.storage_path.resolve()
        target = (root / entry.path).resolve()
        if not target.is_relative_to(root):
            raise AssetVerifyRejected(entry.path, "path escapes storage directory")
        return target

    def _staged_target(self, entry: AssetEntry) -> Path:
        relative = self._resolve_target(entry).relative_to(self.storage_path.resolve())
        return self.staging_path / relative

    async def _fetch_asset(
        self, entry: AssetEntry, limiter
    ) -> tuple[AssetEntry, AssetError | None]:
        async with limiter:
            try:
                staged = self._staged_target(entry)
            except AssetError as e:
                return entry, e
            temp = staged.with_name(staged.name + TEMP_SUFFIX)
            assert self.remote_manifest is not None
            url = self.remote_manifest.asset_url(entry)

            try:
                temp.parent.mkdir(parents=True, exist_ok=True)
                await self.transport.download(url, temp, self.stop_event)
            except TransportError as e:
                return entry, AssetTransportFailed(entry.path, str(e))
            except OSError as e:
                return entry, AssetTransportFailed(entry.path, f"write failed: {e}")

            try:
                data = temp.read_bytes()
                if not self.verifier.accept(entry, data):
                    temp.unlink(missing_ok=True)
                    return entry, AssetVerifyRejected(entry.path, "verification rejected")
                if entry.compressed:
                    members = extract_archive(temp, self.staging_path)
                    temp.unlink(missing_ok=True)
                    if members is None:
                        return entry, AssetDecompressFailed(entry.path, "cannot extract package")
                else:
                    temp.replace(staged)
            except OSError as e:
                temp.unlink(missing_ok=True)
                return entry, AssetTransportFailed(entry.path, f"install failed: {e}")
        return entry, None

    # endregion

    # region 完成
    def new_search_roots(self) -> list[str]:
        """存储根目录在前，其后为新清单声明的搜索路径"""
        roots = [str(self.storage_path)]
        if self.remote_manifest is not None:
            roots.extend(
                str(self.storage_path / path) for path in self.remote_manifest.search_paths
            )
        return roots

    def install(self) -> None:
        """
        将暂存目录中的全部资源移入存储目录，只在整个批次成功后调用。

        Raises:
            PersistFailed: 移动文件失败
        """
        if self._state is not SessionState.FINISHED:
            raise InvalidStateError(f"cannot install in state {self._state.value}")
        if self.installed:
            return
        moved = 0
        try:
            if self.staging_path.is_dir():
                for source in sorted(self.staging_path.rglob("*")):
                    if not source.is_file() or source.name.endswith(TEMP_SUFFIX):
                        continue
                    target = self.storage_path / source.relative_to(self.staging_path)
                    target.parent.mkdir(parents=True, exist_ok=True)
                    source.replace(target)
                    moved += 1
                shutil.rmtree(self.staging_path)
        except OSError as e:
            logger.error("暂存资源移入存储目录失败: %s", e)
            raise PersistFailed(f"failed to install staged assets: {e}") from e
        self.installed = True
        logger.info("已将 %d 个暂存文件移入存储目录", moved)

    def finalize(self) -> None:
        """
        保存新清单为本地清单，并删除新清单中已移除的资源。

        Raises:
            PersistFailed: 清单写入失败
        """
        if self._state is not SessionState.FINISHED or not self.installed:
            raise InvalidStateError(f"cannot finalize in state {self._state.value}")
        assert self.remote_manifest is not None
        try:
            self.store.save_local(self.remote_manifest)
        except (OSError, TypeError, ValueError) as e:
            logger.error("本地清单保存失败: %s", e)
            raise PersistFailed(f"failed to save manifest: {e}") from e

        for path in self.remote_manifest.removed_since(self.local_manifest):
            try:
                target = self._resolve_target(AssetEntry(path))
                if target.is_file():
                    target.unlink()
                    logger.debug("删除已移除的资源: %s", path)
            except (AssetError, OSError) as e:
                logger.debug("删除已移除的资源失败 %s: %s", path, e)

    # endregion
