"""Operator choice between several matching Rapports sub-projects.

The orchestrator awaits ``DisambiguationGate.disambiguate()``. The gate
opens a ``SelectionRequest`` and hands it to a responder, which is the
only thing that knows how to talk to the operator: a console prompt, an
automatic default, or a scripted list of answers in tests. The request
stays open until the responder (or any UI holding it) calls ``choose()``,
``confirm()`` or ``cancel()``. There is no timeout.
"""

import asyncio
import inspect
from typing import Awaitable, Callable, Iterable

from errors import SelectionCancelled
from models import SubProjectChoice


class SelectionRequest:
    """One open sub-project selection."""

    def __init__(self, keyword: str, candidates: Iterable[SubProjectChoice]):
        self.keyword = keyword
        self.candidates = list(candidates)
        if not self.candidates:
            raise ValueError("A selection needs at least one candidate")
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._cancelled = False

    @property
    def default(self) -> SubProjectChoice:
        """The preselected candidate (the first one)."""
        return self.candidates[0]

    @property
    def done(self) -> bool:
        return self._future.done()

    def choose(self, value: str) -> None:
        if self.done:
            raise RuntimeError("Selection already completed")
        if value not in {c.value for c in self.candidates}:
            raise ValueError(f"'{value}' is not one of the offered sub-projects")
        self._future.set_result(value)

    def confirm(self) -> None:
        self.choose(self.default.value)

    def cancel(self) -> None:
        if self.done:
            raise RuntimeError("Selection already completed")
        self._cancelled = True
        self._future.set_result(None)

    async def wait(self) -> str:
        value = await self._future
        if self._cancelled:
            raise SelectionCancelled()
        return value


Responder = Callable[[SelectionRequest], Awaitable[None] | None]


class DisambiguationGate:
    """Suspends the caller until the operator resolves one selection."""

    def __init__(self, responder: Responder | None = None):
        self.responder = responder or console_responder
        self.pending: SelectionRequest | None = None

    async def disambiguate(self, candidates: Iterable[SubProjectChoice], keyword: str) -> str:
        """Return the chosen sub-project value.

        Raises:
            SelectionCancelled: the operator cancelled.
            RuntimeError: another selection is still open.
        """
        if self.pending is not None:
            raise RuntimeError("A sub-project selection is already open")

        request = SelectionRequest(keyword, candidates)
        self.pending = request
        try:
            result = self.responder(request)
            if inspect.isawaitable(result):
                await result
            return await request.wait()
        finally:
            self.pending = None


# ---------------------------------------------------------------------------
# Responders
# ---------------------------------------------------------------------------


def auto_confirm_responder(request: SelectionRequest) -> None:
    """Non-interactive: always take the preselected candidate."""
    print(f'    [*] Auto-selecting "{request.default.label}" for "{request.keyword}"')
    request.confirm()


class ScriptedResponder:
    """Answers selections from a fixed list; used for tests and batch runs.

    Each answer is a sub-project value to choose, or None to cancel. When
    the answers run out the default candidate is confirmed.
    """

    def __init__(self, answers: Iterable[str | None] = ()):
        self.answers = list(answers)
        self.requests: list[SelectionRequest] = []

    def __call__(self, request: SelectionRequest) -> None:
        self.requests.append(request)
        if not self.answers:
            request.confirm()
            return
        answer = self.answers.pop(0)
        if answer is None:
            request.cancel()
        else:
            request.choose(answer)


async def console_responder(request: SelectionRequest) -> None:
    """Ask on the terminal. ENTER takes the default, 'c' cancels."""
    loop = asyncio.get_running_loop()

    print()
    print(f'  Select sub-project for "{request.keyword}":')
    for i, choice in enumerate(request.candidates, start=1):
        marker = "*" if i == 1 else " "
        print(f"   {marker} {i}) {choice.label}")

    while not request.done:
        print(f"  Number [1-{len(request.candidates)}], ENTER for 1, c to cancel: ", end="", flush=True)
        try:
            answer = (await loop.run_in_executor(None, input)).strip()
        except EOFError:
            # Non-interactive mode
            print()
            request.confirm()
            return

        if not answer:
            request.confirm()
        elif answer.lower() == "c":
            request.cancel()
        elif answer.isdigit() and 1 <= int(answer) <= len(request.candidates):
            request.choose(request.candidates[int(answer) - 1].value)
        else:
            print(f"  [!] Invalid choice '{answer}'")
