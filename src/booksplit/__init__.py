"""Split book PDFs into per-section PDFs from a hand-written page index."""
