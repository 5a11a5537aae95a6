"""Progress reporting utilities."""

import sys
from typing import Optional
from tqdm import tqdm


class ProgressReporter:
    """Progress bar over the images handled by a command."""

    def __init__(self, total: int, description: str = "Processing", unit: str = "image",
                 disable: bool = False):
        self.total = total
        self.description = description
        self.unit = unit
        self.disable = disable
        self.progress_bar = None
        self.processed = 0
        self.skipped = 0

    def start(self):
        """Start progress reporting."""
        self.progress_bar = tqdm(
            total=self.total,
            desc=self.description,
            unit=self.unit,
            file=sys.stderr,
            disable=self.disable
        )

    def update(self, skipped: bool = False, image: Optional[str] = None):
        """Record one finished image."""
        if self.progress_bar:
            if skipped:
                self.skipped += 1
            else:
                self.processed += 1

            postfix = {'processed': self.processed, 'skipped': self.skipped}
            if image:
                postfix['last'] = image
            self.progress_bar.set_postfix(postfix)
            self.progress_bar.update(1)

    def finish(self):
        """Finish progress reporting."""
        if self.progress_bar:
            self.progress_bar.close()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()
