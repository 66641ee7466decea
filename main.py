import sys
from tkinter import messagebox

from core.event_log import configure_logging
from core.shell_manager import PSHVToolsCore
from ui.gui_interface import ShellGUI

__version__ = "1.0"


def main():
    try:
        core = PSHVToolsCore()
        configure_logging(core.config["log_dir"])
        gui = ShellGUI(core)
    except Exception as e:
        messagebox.showerror("Error", f"Error starting application: {str(e)}")
        raise

    gui.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
