from __future__ import annotations

from rich.theme import Theme

# Theme definitions based on VSCode and popular themes
THEMES: dict[str, dict[str, str]] = {
    "dark+": {
        # VSCode Dark+ theme
        "error": "bright_red",
        "success": "bright_green",
        "warning": "bright_yellow",
        "info": "bright_cyan",
        "dim": "dim white",
        "bold": "bold white",
        "accent": "cyan",
        "table_header": "cyan",
        "role.user": "bold bright_green",
        "role.assistant": "bold bright_cyan",
        "role.tool": "bold bright_yellow",
        "block.thinking": "italic dim white",
        "block.tool": "magenta",
    },
    "light+": {
        # VSCode Light+ theme
        "error": "red",
        "success": "green",
        "warning": "yellow",
        "info": "blue",
        "dim": "dim black",
        "bold": "bold black",
        "accent": "blue",
        "table_header": "blue",
        "role.user": "bold green",
        "role.assistant": "bold blue",
        "role.tool": "bold yellow",
        "block.thinking": "italic dim black",
        "block.tool": "magenta",
    },
    "monokai": {
        "error": "#f92672",  # Pink-red
        "success": "#a6e22e",  # Green
        "warning": "#fd971f",  # Orange
        "info": "#66d9ef",  # Cyan-blue
        "dim": "dim #75715e",
        "bold": "bold #f8f8f2",
        "accent": "#ae81ff",  # Purple
        "table_header": "#66d9ef",
        "role.user": "bold #a6e22e",
        "role.assistant": "bold #66d9ef",
        "role.tool": "bold #fd971f",
        "block.thinking": "italic #75715e",
        "block.tool": "#ae81ff",
    },
    "nord": {
        "error": "#bf616a",
        "success": "#a3be8c",
        "warning": "#ebcb8b",
        "info": "#88c0d0",
        "dim": "dim #4c566a",
        "bold": "bold #eceff4",
        "accent": "#81a1c1",
        "table_header": "#88c0d0",
        "role.user": "bold #a3be8c",
        "role.assistant": "bold #88c0d0",
        "role.tool": "bold #ebcb8b",
        "block.thinking": "italic #4c566a",
        "block.tool": "#b48ead",
    },
}

DEFAULT_THEME = "dark+"


class ThemeManager:
    """Resolves a configured theme name to a Rich Theme."""

    def __init__(self, theme_name: str = DEFAULT_THEME):
        self.theme_name = DEFAULT_THEME
        self._theme = self._create_theme(DEFAULT_THEME)
        self.set_theme(theme_name)

    @staticmethod
    def get_available_themes() -> list[str]:
        return list(THEMES.keys())

    @staticmethod
    def is_valid_theme(theme_name: str) -> bool:
        return theme_name in THEMES

    @staticmethod
    def _create_theme(theme_name: str) -> Theme:
        return Theme(THEMES[theme_name], inherit=True)

    def get_theme(self) -> Theme:
        return self._theme

    def set_theme(self, theme_name: str) -> None:
        """Change the current theme."""
        if not self.is_valid_theme(theme_name):
            available = ", ".join(self.get_available_themes())
            raise ValueError(f"Invalid theme: {theme_name}. Available: {available}")
        self.theme_name = theme_name
        self._theme = self._create_theme(theme_name)
