"""LC-3 word-addressed memory."""
