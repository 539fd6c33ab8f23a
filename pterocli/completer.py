"""Tab completion for the remote console prompt.

Completes the local ``!exit`` sigil (with its description) and commands
already sent during this console session, most recent first.
"""

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from pterocli.engine.reader import EXIT_SIGIL


class ConsoleCompleter(Completer):
    """Completer for console commands."""

    # local-only commands handled by the reader itself
    _LOCAL_COMMANDS = {
        EXIT_SIGIL: "leave the console (not sent to the server)",
    }

    def __init__(self, history: list[str]):
        """history is the live list of commands submitted this session."""
        self.history = history

    def get_completions(self, document: Document, complete_event):
        text = document.text_before_cursor.lstrip()

        if text.startswith("!"):
            for name, desc in self._LOCAL_COMMANDS.items():
                if name.startswith(text.lower()):
                    yield Completion(name, start_position=-len(text), display_meta=desc)
            return

        seen: set[str] = set()
        for cmd in reversed(self.history):
            if cmd in seen or cmd == text or not cmd.startswith(text):
                continue

            seen.add(cmd)
            yield Completion(cmd, start_position=-len(text))
