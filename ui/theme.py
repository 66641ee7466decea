# theme.py - palette and widget styles for the PSHVTools shell

import customtkinter as ctk

# ======== Color Palette ========
COLORS = {
    "primary": "#2d6cdf",      # PowerShell blue
    "secondary": "#1f4fa8",    # Hover
    "danger": "#b03a2e",       # Exit / cancel buttons
    "danger_hover": "#8e2f25",
    "text": "#F2F2F2",
    "muted": "#9A9A9A",        # Echoed command lines
    "background": "#141821",
    "surface": "#232a36",      # Entries and log view
    "success": "#2ecc71",
    "error": "#e74c3c",        # stderr lines and failed statuses
}

# ======== Typography ========
FONTS = {
    "title": ("Segoe UI", 18, "bold"),
    "button": ("Segoe UI", 13, "bold"),
    "label": ("Segoe UI", 12),
    "console": ("Consolas", 11),
}

# ======== Component Styles ========
STYLES = {
    "button": {
        "fg_color": COLORS["primary"],
        "hover_color": COLORS["secondary"],
        "text_color": COLORS["text"],
        "corner_radius": 8,
    },
    "danger_button": {
        "fg_color": COLORS["danger"],
        "hover_color": COLORS["danger_hover"],
        "text_color": COLORS["text"],
        "corner_radius": 8,
    },
    "frame": {
        "fg_color": COLORS["background"],
        "border_width": 0,
    },
    "entry": {
        "fg_color": COLORS["surface"],
        "text_color": COLORS["text"],
        "border_color": COLORS["primary"],
        "border_width": 1,
        "corner_radius": 6,
    },
    "console": {
        "fg_color": COLORS["surface"],
        "text_color": COLORS["text"],
        "corner_radius": 6,
        "wrap": "word",
    },
}

# Text tags used by the log view
LOG_TAGS = {
    "stderr": COLORS["error"],
    "failure": COLORS["error"],
    "success": COLORS["success"],
    "command": COLORS["muted"],
}


def configure_theme():
    ctk.set_appearance_mode("Dark")
    ctk.set_widget_scaling(1.0)
    ctk.set_window_scaling(1.0)
    ctk.set_default_color_theme("blue")
