from perm_reconcile.tui.renderers import ReconcileConsoleUI

__all__ = ["ReconcileConsoleUI"]
