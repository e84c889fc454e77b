"""Collects the pages of one chapter until it completes, fails or times out."""
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Union

from pagecollect.assembler import PageAssembler
from pagecollect.items import PageFragment
from pagecollect.schemas import SiteProfile

logger = logging.getLogger(__name__)

ERR_REQUEST_FAILED = "request failed"
ERR_TIMEOUT = "download timeout"


class WaitState(str, enum.Enum):
    """Completion waiter states."""
    WAITING = "waiting"
    DONE = "done"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True)
class _Closed:
    reason: str


class PageChannel:
    """
    Channel from page callbacks to a completion waiter.

    Producers ``send`` fragments and ``close`` the channel when the
    chapter's request fails. Fragments sent after closing are dropped.
    """

    def __init__(self):
        self._queue: "asyncio.Queue[Union[PageFragment, _Closed]]" = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, fragment: PageFragment) -> None:
        if self._closed:
            logger.debug(f"Dropping page {fragment.page_number} sent to closed channel")
            return
        self._queue.put_nowait(fragment)

    def close(self, reason: str = ERR_REQUEST_FAILED) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_Closed(reason))

    async def receive(self) -> Union[PageFragment, _Closed]:
        return await self._queue.get()


@dataclass
class WaitResult:
    """Terminal outcome of a completion waiter."""
    state: WaitState
    assembler: PageAssembler
    title: str
    next_chapter_url: str = ""
    error: Optional[str] = None


def effective_timeout(profile: SiteProfile, timeout: Optional[float], retry_count: int) -> float:
    """
    Seconds a chapter may stay silent before it is given up.

    Uses the configured timeout or the profile default. Slow sites get more
    headroom by multiplying with the retry count.
    """
    value = timeout if timeout and timeout > 0 else profile.default_timeout
    if profile.scale_timeout_by_retry and retry_count > 1:
        value *= retry_count
    return value


class CompletionWaiter:
    """
    Drains a page channel into a page assembler.

    Each received page is inserted into the assembler. A non-empty page
    title replaces the working title and a non-empty next chapter URL is
    remembered. The chapter is done once its last page has been received
    and no page before it is missing, as pages may arrive in any order. The
    timer restarts after every received page.
    """

    def __init__(
        self,
        channel: PageChannel,
        assembler: PageAssembler,
        title: str,
        timeout: float,
    ):
        self.channel = channel
        self.assembler = assembler
        self.title = title
        self.timeout = timeout
        self.next_chapter_url = ""
        self.last_page: Optional[int] = None
        self.state = WaitState.WAITING

    async def wait(self) -> WaitResult:
        if self.state is not WaitState.WAITING:
            raise RuntimeError(f"waiter already finished with state {self.state.value}")

        error = None
        while self.state is WaitState.WAITING:
            try:
                data = await asyncio.wait_for(self.channel.receive(), self.timeout)
            except asyncio.TimeoutError:
                self.state = WaitState.TIMED_OUT
                error = ERR_TIMEOUT
                break

            if isinstance(data, _Closed):
                self.state = WaitState.FAILED
                error = data.reason or ERR_REQUEST_FAILED
                break

            self._on_page(data)

        return WaitResult(
            state=self.state,
            assembler=self.assembler,
            title=self.title,
            next_chapter_url=self.next_chapter_url,
            error=error,
        )

    def _on_page(self, page: PageFragment) -> None:
        self.assembler.insert(page)

        if page.title:
            self.title = page.title

        if page.next_chapter_url:
            self.next_chapter_url = page.next_chapter_url

        if page.is_finished:
            self.last_page = page.page_number

        if self.last_page is not None and self.assembler.has_pages_through(self.last_page):
            self.state = WaitState.DONE
