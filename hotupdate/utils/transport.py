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
MFW-ChainFlow Assistant 热更新传输单元
作者:overflow65537
"""

import os
import threading
from pathlib import Path

import requests
from asyncify import asyncify

from hotupdate.common.config import cfg
from hotupdate.common.constants import DOWNLOAD_CHUNK_SIZE
from hotupdate.core.errors import FetchErrorKind, TransportError
from hotupdate.utils.logger import logger


def get_proxy_data() -> dict | None:
    proxy_value = cfg.get(cfg.http_proxy)
    scheme = {0: "http", 1: "socks5"}.get(cfg.get(cfg.proxy))
    if not proxy_value or not scheme:
        return None
    proxies = {key: f"{scheme}://{proxy_value}" for key in ("http", "https")}
    logger.debug("使用代理配置: %s", proxies)
    return proxies


class Transport:
    """
    传输层接口。

    会话只通过 fetch_text/download 两个协程访问网络。
    每个会话持有自己的 stop_event，置位后该会话正在进行的下载会在下一个数据块处中断，
    不影响之后新建的会话。
    """

    async def fetch_text(self, url: str) -> str:
        raise NotImplementedError

    async def download(
        self, url: str, file_path: Path, stop_event: threading.Event | None = None
    ) -> Path:
        raise NotImplementedError


class HttpTransport(Transport):
    """基于 requests 的 HTTP(S) 传输，阻塞调用通过 asyncify 放到线程中执行"""

    def __init__(self, proxies: dict | None = None, timeout: int = 10):
        self.proxies = proxies
        self.timeout = timeout

    @classmethod
    def from_config(cls) -> "HttpTransport":
        return cls(proxies=get_proxy_data(), timeout=cfg.get(cfg.request_timeout))

    def _ssl_verify(self) -> bool:
        if os.path.exists("NO_SSL"):
            logger.debug("检测到NO_SSL文件，跳过SSL验证")
            return False
        return True

    def _get(self, url: str, stream: bool = False) -> requests.Response:
        response = None
        try:
            response = requests.get(
                url,
                stream=stream,
                timeout=self.timeout,
                verify=self._ssl_verify(),
                proxies=self.proxies,
            )
            response.raise_for_status()
            return response
        except requests.exceptions.HTTPError as e:
            if response is not None:
                response.close()
            status = e.response.status_code if e.response is not None else None
            logger.error("请求失败（HTTP错误） %s: %s", url, e)
            raise TransportError(FetchErrorKind.BAD_STATUS, str(e), status) from e
        except requests.RequestException as e:
            if response is not None:
                response.close()
            logger.error("请求失败（连接错误） %s: %s", url, e)
            raise TransportError(
                FetchErrorKind.UNREACHABLE, f"{type(e).__name__}: {e}"
            ) from e

    @asyncify
    def fetch_text(self, url: str) -> str:
        logger.debug("  [请求] %s", url)
        response = self._get(url)
        try:
            return response.text
        finally:
            response.close()

    @asyncify
    def download(
        self, url: str, file_path: Path, stop_event: threading.Event | None = None
    ) -> Path:
        logger.debug("  [下载] URL: %s", url[:100] if url else "N/A")
        logger.debug("  [下载] 保存路径: %s", file_path)
        final_path = Path(file_path)

        def _stopped() -> bool:
            return stop_event is not None and stop_event.is_set()

        if _stopped():
            raise TransportError(FetchErrorKind.UNREACHABLE, "cancelled")
        response = self._get(url, stream=True)
        try:
            final_path.parent.mkdir(parents=True, exist_ok=True)
            downloaded_size = 0
            with open(final_path, "wb") as file:
                for data in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if _stopped():
                        logger.warning("  [下载] 收到停止信号，中断下载")
                        raise TransportError(FetchErrorKind.UNREACHABLE, "cancelled")
                    file.write(data)
                    downloaded_size += len(data)
            logger.debug("  [下载] 下载完成，共 %d 字节", downloaded_size)
            return final_path
        except requests.RequestException as e:
            final_path.unlink(missing_ok=True)
            raise TransportError(
                FetchErrorKind.UNREACHABLE, f"{type(e).__name__}: {e}"
            ) from e
        except BaseException:
            final_path.unlink(missing_ok=True)
            raise
        finally:
            response.close()
