"""CSS theme for the PIN monitor using Dracula colors."""

# Dracula color palette
PURPLE = "#BD93F9"
CYAN = "#8BE9FD"
GREEN = "#50FA7B"
YELLOW = "#F1FA8C"
RED = "#FF5555"
FG = "#F8F8F2"
FG_DIM = "#6272A4"
BG = "#282A36"
BG_DARK = "#1E1F29"

# CSS for the entire application
PIN_CSS = f"""
Screen {{
    background: {BG};
}}

#title {{
    width: 100%;
    height: 1;
    text-align: center;
    text-style: bold;
    color: {PURPLE};
}}

/* Status panel */
StatusPanel {{
    height: 1fr;
    padding: 1 2;
}}

StatusPanel RichLog {{
    height: 1fr;
    border: solid {FG_DIM};
    padding: 0 1;
}}

/* Footer */
Footer {{
    background: {BG_DARK};
    color: {FG_DIM};
    height: 1;
}}
"""
