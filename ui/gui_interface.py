import logging
from tkinter import messagebox

import customtkinter as ctk

from core.command_builder import InvalidParameter, OperationKind
from core.config import COMPRESSION_LEVELS
from core.process_runner import OutputLine
from ui.theme import COLORS, FONTS, LOG_TAGS, STYLES, configure_theme

logger = logging.getLogger(__name__)


class ShellGUI(ctk.CTk):
    def __init__(self, core):
        super().__init__()
        configure_theme()
        self.title("PSHVTools Shell")
        self.geometry("960x640")
        self.core = core
        self.configure(fg_color=COLORS["background"])
        self.create_widgets()
        self.load_defaults()
        self.update_status()
        self.protocol("WM_DELETE_WINDOW", self.exit_app)

    def create_widgets(self):
        self.grid_columnconfigure(1, weight=1)
        self.grid_rowconfigure(0, weight=1)

        sidebar = ctk.CTkFrame(self, **STYLES["frame"])
        sidebar.grid(row=0, column=0, sticky="ns", padx=10, pady=10)

        ctk.CTkLabel(sidebar, text="PSHVTools", font=FONTS["title"],
                     text_color=COLORS["text"]).pack(pady=(5, 15))

        buttons = [
            ("\U0001F4BE Backup", lambda: self.run_operation(OperationKind.BACKUP)),
            ("\U0001F5DC️ Compact", lambda: self.run_operation(OperationKind.COMPACT)),
            ("❤️ Health", lambda: self.run_operation(OperationKind.HEALTH)),
            ("⚙️ Config", lambda: self.run_operation(OperationKind.CONFIG)),
            ("⏮️ Restore", lambda: self.run_operation(OperationKind.RESTORE)),
        ]
        for text, cmd in buttons:
            ctk.CTkButton(
                sidebar,
                text=text,
                command=cmd,
                **STYLES["button"],
                font=FONTS["button"]
            ).pack(fill="x", padx=5, pady=4)

        ctk.CTkButton(sidebar, text="⏹ Cancel", command=self.cancel_operations,
                      **STYLES["danger_button"], font=FONTS["button"]).pack(fill="x", padx=5, pady=(20, 4))
        ctk.CTkButton(sidebar, text="\U0001F9F9 Clear Log", command=self.clear_log,
                      **STYLES["button"], font=FONTS["button"]).pack(fill="x", padx=5, pady=4)
        ctk.CTkButton(sidebar, text="\U0001F6AA Exit", command=self.exit_app,
                      **STYLES["danger_button"], font=FONTS["button"]).pack(fill="x", padx=5, pady=4)

        main = ctk.CTkFrame(self, **STYLES["frame"])
        main.grid(row=0, column=1, sticky="nsew", padx=10, pady=10)
        main.grid_columnconfigure(1, weight=1)
        main.grid_rowconfigure(5, weight=1)

        self.pattern_entry = self._add_entry(main, 0, "Name pattern:")
        self.destination_entry = self._add_entry(main, 1, "Destination:")
        self.keep_entry = self._add_entry(main, 2, "Keep (backups):")

        ctk.CTkLabel(main, text="Compression:", font=FONTS["label"],
                     text_color=COLORS["text"]).grid(row=3, column=0, sticky="w", pady=4)
        self.compression_var = ctk.StringVar(value=COMPRESSION_LEVELS[0])
        ctk.CTkOptionMenu(main, values=list(COMPRESSION_LEVELS),
                          variable=self.compression_var).grid(row=3, column=1, sticky="w", pady=4)

        self.dry_run_var = ctk.BooleanVar(value=False)
        ctk.CTkCheckBox(main, text="Dry run (-WhatIf)", variable=self.dry_run_var,
                        font=FONTS["label"], text_color=COLORS["text"]).grid(
            row=4, column=1, sticky="w", pady=4)

        self.log_view = ctk.CTkTextbox(main, font=FONTS["console"], **STYLES["console"])
        self.log_view.grid(row=5, column=0, columnspan=2, sticky="nsew", pady=(10, 5))
        for tag, color in LOG_TAGS.items():
            self.log_view.tag_config(tag, foreground=color)
        self.log_view.configure(state="disabled")

        self.status_label = ctk.CTkLabel(main, text="", anchor="w", font=FONTS["label"],
                                         text_color=COLORS["muted"])
        self.status_label.grid(row=6, column=0, columnspan=2, sticky="ew")

    def _add_entry(self, parent, row, label):
        ctk.CTkLabel(parent, text=label, font=FONTS["label"],
                     text_color=COLORS["text"]).grid(row=row, column=0, sticky="w", pady=4, padx=(0, 10))
        entry = ctk.CTkEntry(parent, **STYLES["entry"])
        entry.grid(row=row, column=1, sticky="ew", pady=4)
        return entry

    def load_defaults(self):
        defaults = self.core.get_defaults()
        for entry, name in ((self.pattern_entry, "pattern"),
                            (self.destination_entry, "destination"),
                            (self.keep_entry, "keep")):
            entry.delete(0, "end")
            entry.insert(0, str(defaults.get(name, "")))
        if defaults.get("compression") in COMPRESSION_LEVELS:
            self.compression_var.set(defaults["compression"])
        self.dry_run_var.set(bool(defaults.get("dry_run")))

    def collect_values(self):
        return {
            "pattern": self.pattern_entry.get(),
            "destination": self.destination_entry.get(),
            "keep": self.keep_entry.get(),
            "compression": self.compression_var.get(),
            "dry_run": self.dry_run_var.get(),
        }

    def dispatch(self, callback):
        """Hand a worker-thread callback to the Tk event loop"""
        self.after(0, callback)

    # ========== OPERATIONS ==========

    def run_operation(self, kind):
        try:
            success, message = self.core.start_operation(
                kind,
                self.collect_values(),
                lambda event: self.handle_event(kind, event),
                dispatch=self.dispatch,
            )
        except InvalidParameter as e:
            messagebox.showerror("Invalid parameter", str(e))
            return

        if not success:
            messagebox.showwarning("Busy", message)
            return
        self.append_log(f"> {message}", "command")
        self.update_status()

    def handle_event(self, kind, event):
        if isinstance(event, OutputLine):
            self.append_log(event.text, "stderr" if event.is_error else None)
            return

        self.append_log(f"[{kind.value}] {event.describe()}",
                        "success" if event.success else "failure")
        self.update_status()

    def cancel_operations(self):
        cancelled = self.core.cancel_all()
        if not cancelled:
            messagebox.showinfo("Cancel", "No command is running.")
            return
        self.append_log("> Cancelling: " + ", ".join(k.value for k in cancelled), "command")

    # ========== LOG VIEW ==========

    def append_log(self, text, tag=None):
        self.log_view.configure(state="normal")
        self.log_view.insert("end", text + "\n", tag)
        self.log_view.see("end")
        self.log_view.configure(state="disabled")

    def clear_log(self):
        self.log_view.configure(state="normal")
        self.log_view.delete("1.0", "end")
        self.log_view.configure(state="disabled")

    def update_status(self):
        running = self.core.running_operations()
        if running:
            self.status_label.configure(
                text="Running: " + ", ".join(k.value for k in running))
        else:
            self.status_label.configure(text="Ready")

    def exit_app(self):
        if self.core.running_operations():
            if not messagebox.askyesno("Exit", "Commands are still running. Cancel them and exit?"):
                return
            self.core.cancel_all()

        try:
            self.core.save_defaults(self.collect_values())
        except RuntimeError as e:
            logger.warning("Could not save defaults: %s", e)
        self.destroy()

    def run(self):
        self.mainloop()
