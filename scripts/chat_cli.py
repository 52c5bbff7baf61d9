#!/usr/bin/env python3
"""Interactive chat CLI for exercising the Genesis chat endpoint."""

import json
import sys

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.syntax import Syntax


class ChatCLI:
    """Terminal stand-in for the chat UI: keeps history and shows transactions to sign."""

    def __init__(self, base_url: str = "http://localhost:8000", wallet_address: str | None = None):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.wallet_address = wallet_address
        self.history: list[dict[str, str]] = []
        self.console = Console()
        self.client = httpx.Client(timeout=180.0)

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold magenta]Genesis Chat - Interactive Terminal[/bold magenta]\n"
                "Describe the token you want to create or the swap you want to make.\n"
                "Commands: /help, /wallet <address>, /clear, /quit",
                border_style="magenta",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]Cannot connect to the service at {self.base_url}.[/red]")
            return

        self.console.print("[green]Connected to Genesis chat service[/green]")
        self._show_wallet()

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
                command = user_input.strip().lower()

                if command in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif command == "/help":
                    self._show_help()
                    continue
                elif command == "/clear":
                    self.history = []
                    self.console.print("[yellow]History cleared[/yellow]")
                    continue
                elif command.startswith("/wallet"):
                    self.wallet_address = user_input.strip()[len("/wallet") :].strip() or None
                    self._show_wallet()
                    continue
                elif command == "":
                    continue

                response = self._send_message(user_input)
                if response:
                    self._display_response(response)
                    self.history.append({"role": "user", "content": user_input})
                    self.history.append({"role": "assistant", "content": response.get("content", "")})

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        """Test connection to the service."""
        try:
            response = self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _send_message(self, message: str) -> dict | None:
        """Send message and history to the chat endpoint."""
        payload: dict = {"message": message, "history": self.history}
        if self.wallet_address:
            payload["walletAddress"] = self.wallet_address

        try:
            with self.console.status("[dim]Thinking...[/dim]"):
                response = self.client.post(f"{self.base_url}/api/chat", json=payload)
        except httpx.HTTPError as e:
            self.console.print(f"[red]Connection error: {e}[/red]")
            return None

        if response.status_code == 200:
            return response.json()

        self.console.print(f"[red]API Error: {response.status_code} - {response.text}[/red]")
        return None

    def _display_response(self, response: dict) -> None:
        """Display the reply and, for tool results, the transaction to sign."""
        self.console.print(
            Panel(
                Markdown(response.get("content") or "No response"),
                title="[bold green]Genesis Assistant[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )

        if response.get("type") != "tool_result":
            return

        for item in response.get("result", {}).get("content", []):
            try:
                transaction = json.loads(item.get("text", ""))
            except json.JSONDecodeError:
                continue
            self.console.print(
                Panel(
                    Syntax(json.dumps(transaction, indent=2), "json", word_wrap=True),
                    title=f"[bold yellow]Transaction to sign ({response.get('tool')})[/bold yellow]",
                    subtitle="[dim]Sign and send with your wallet[/dim]",
                    border_style="yellow",
                )
            )

    def _show_wallet(self) -> None:
        if self.wallet_address:
            self.console.print(f"[green]Wallet: {self.wallet_address}[/green]")
        else:
            self.console.print("[yellow]No wallet set. Use /wallet <address> before creating a token.[/yellow]")

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /wallet <address> - Set (or clear) the connected wallet address
• /clear - Clear conversation history
• /quit or /exit - Exit the chat

[bold]Example Conversation:[/bold]
1. "/wallet 7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
2. "Create a token called Foo with symbol FOO"
3. "Get a quote to buy 1 SOL worth of FOO"
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
    wallet_address = sys.argv[2] if len(sys.argv) > 2 else None

    chat = ChatCLI(base_url, wallet_address)
    chat.start()


if __name__ == "__main__":
    main()
