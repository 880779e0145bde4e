"""Read Safari's bookmarks, reading list, history and cloud tabs, and drive its windows."""
