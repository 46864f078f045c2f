"""
Rich printers for displaying chat responses in the terminal.
"""
from typing import Dict, Any, AsyncIterator, List, Optional
from rich.console import Console
from rich.markdown import Markdown
from rich.syntax import Syntax
from rich.panel import Panel
from rich.live import Live
from rich.console import Group
from rich.text import Text
import json

from .types import StreamDelta
from .utils import ResponseAccumulator

console = Console()


def _metadata_panel(meta: Dict[str, Any]) -> Panel:
    metadata_json = json.dumps(meta, indent=2, default=str)
    metadata_display = Syntax(
        metadata_json,
        "json",
        theme="lightbulb",
        background_color="default"
    )
    return Panel(
        metadata_display,
        title="[bold]Metadata[/bold]",
        border_style="dim"
    )


class RichStreamPrinter:
    """
    Displays a stream of deltas live using rich.

    Thinking is shown dimmed above the answer, text is rendered as
    markdown, and completed tool calls are listed below it.

    Attributes:
        title: Title for the display panel
        show_thinking: Whether to render thinking text
        show_metadata: Whether to show usage metadata at the end
        code_theme: Theme for code blocks
        refresh_rate: Refresh rate for Live display
        border_style: Border style while streaming
    """

    def __init__(
        self,
        title: str = "Streaming Response",
        show_thinking: bool = True,
        show_metadata: bool = True,
        code_theme: str = "coffee",
        inline_code_theme: str = "monokai",
        refresh_rate: int = 30,
        border_style: str = "blue",
        model: Optional[str] = None,
        output: Optional[Console] = None,
    ):
        self.title = title
        self.show_thinking = show_thinking
        self.show_metadata = show_metadata
        self.code_theme = code_theme
        self.inline_code_theme = inline_code_theme
        self.refresh_rate = refresh_rate
        self.border_style = border_style
        self.model = model
        self.console = output or console
        self._thinking = ""
        self._accumulator = ResponseAccumulator()

    async def print_stream(self, deltas: AsyncIterator[StreamDelta]) -> Dict[str, Any]:
        """
        Render the deltas as they arrive.

        Returns:
            Dict[str, Any]: {"text", "thinking", "message", "tool_calls", "meta"}
        """
        self._thinking = ""
        self._accumulator = ResponseAccumulator()

        with Live(Panel("", border_style=self.border_style), refresh_per_second=self.refresh_rate,
                  console=self.console) as live:
            async for delta in deltas:
                self._process_delta(delta)
                self._update_display(live, is_final=delta["type"] == "done")

        acc = self._accumulator
        return {
            "text": acc.text,
            "thinking": self._thinking,
            "message": acc.to_message(),
            "tool_calls": acc.tool_calls,
            "meta": self._meta(),
        }

    def _process_delta(self, delta: StreamDelta) -> None:
        if delta["type"] == "thinking_delta":
            self._thinking += delta["text"]
        self._accumulator.add(delta)

    def _meta(self) -> Dict[str, Any]:
        acc = self._accumulator
        meta: Dict[str, Any] = {
            "model": self.model,
            "finish_reason": acc.finish_reason,
            "usage": acc.usage,
        }
        if acc.errors:
            meta["errors"] = acc.errors
        return meta

    def _update_display(self, live: Live, is_final: bool = False) -> None:
        title = f"[bold]{'Final Response' if is_final else self.title}[/bold]"
        if self.model:
            title += f" [dim]({self.model})[/dim]"

        live.update(
            Panel(
                self._build_content(is_final),
                title=title,
                border_style="green" if is_final else self.border_style,
                padding=(1, 2)
            )
        )

    def _build_content(self, is_final: bool) -> Any:
        acc = self._accumulator
        renderables: List[Any] = []

        if self.show_thinking and self._thinking.strip():
            renderables.append(Text(self._thinking, style="dim italic"))

        if acc.text.strip():
            renderables.append(Markdown(
                acc.text,
                code_theme=self.code_theme,
                inline_code_theme=self.inline_code_theme
            ))

        for call in acc.tool_calls:
            renderables.append(Text(
                f"→ {call['name']}({json.dumps(call['input'], default=str)})",
                style="bold cyan"
            ))

        for error in acc.errors:
            renderables.append(Text(f"Error: {error}", style="bold red"))

        if not renderables:
            renderables.append(Text("(waiting for response...)", style="dim italic"))

        if is_final and self.show_metadata:
            renderables.append(_metadata_panel(self._meta()))

        return Group(*renderables)

    def get_full_text(self) -> str:
        return self._accumulator.text

    def get_thinking(self) -> str:
        return self._thinking


class RichPrinter:
    """
    Displays a completed `UnifiedChatClient.chat()` result using rich.
    """

    def __init__(
        self,
        title: str = "Response",
        show_metadata: bool = True,
        code_theme: str = "coffee",
        inline_code_theme: str = "monokai",
        border_style: str = "green",
        output: Optional[Console] = None,
    ):
        self.title = title
        self.show_metadata = show_metadata
        self.code_theme = code_theme
        self.inline_code_theme = inline_code_theme
        self.border_style = border_style
        self.console = output or console

    def print_chat(self, response: Dict[str, Any]) -> Dict[str, Any]:
        """
        Display a chat response.

        Args:
            response: Result of UnifiedChatClient.chat()

        Returns:
            The same response dictionary for chaining
        """
        text = response.get("text", "")
        meta = response.get("meta", {})

        title = f"[bold]{self.title}[/bold]"
        if meta.get("model"):
            title += f" [dim]({meta['model']})[/dim]"

        if text.strip():
            content: Any = Markdown(text, code_theme=self.code_theme, inline_code_theme=self.inline_code_theme)
        else:
            content = Text("(empty response)", style="dim italic")

        if self.show_metadata and meta:
            content = Group(content, _metadata_panel(meta))

        self.console.print(Panel(content, title=title, border_style=self.border_style, padding=(1, 2)))
        return response
