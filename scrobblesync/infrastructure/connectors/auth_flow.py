"""Console implementation of the Last.fm web auth handshake.

Opens the authorization page in a browser and asks the user to paste the URL
they were redirected to (or the bare token). The flow resolves exactly once:
with a token, or with an ``AuthError``.
"""

import asyncio
from typing import Any
import webbrowser

from attrs import define, field
from rich.console import Console
from rich.prompt import Prompt

from scrobblesync.config import get_logger
from scrobblesync.domain.exceptions import AuthError, AuthFailureReason
from scrobblesync.infrastructure.connectors.lastfm_codec import extract_token

logger = get_logger(__name__).bind(service="lastfm")


@define(slots=True)
class ConsoleAuthFlow:
    """Browser-plus-prompt auth flow for the command line."""

    console: Console = field(factory=Console)
    open_browser: bool = True
    prompt: Any = field(default=None, repr=False)

    def _ask(self) -> str:
        ask = self.prompt or (
            lambda: Prompt.ask(
                "[bold]Paste the URL you were redirected to[/bold]",
                console=self.console,
                default="",
                show_default=False,
            )
        )
        return ask()

    async def obtain_token(self, auth_url: str, callback_url: str) -> str:
        """Resolve to the one-time token from the redirect to ``callback_url``.

        Raises:
            AuthError: USER_CANCELLED when the prompt is left empty or
                interrupted, NO_TOKEN when the pasted value holds no token
        """
        self.console.print(
            "\n[bold cyan]Authorize ScrobbleSync on Last.fm[/bold cyan]\n"
            f"Open this URL if your browser does not start:\n{auth_url}\n"
            f"After approving, Last.fm redirects to [dim]{callback_url}?token=...[/dim]"
        )
        if self.open_browser:
            opened = await asyncio.to_thread(webbrowser.open, auth_url)
            logger.debug(f"Browser opened for Last.fm auth: {opened}")

        try:
            answer = await asyncio.to_thread(self._ask)
        except (KeyboardInterrupt, EOFError) as e:
            raise AuthError(AuthFailureReason.USER_CANCELLED) from e

        if not answer or not answer.strip():
            raise AuthError(AuthFailureReason.USER_CANCELLED)

        return extract_token(answer)
