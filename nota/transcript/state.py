from typing import Callable, Optional


class TranscriptState:
    """
    Reconciled transcript for ONE recording.

    `committed` is append-only: nothing accepted into it is ever edited
    or removed. `interim` is the replaceable preview of the utterance
    still in flight.
    """

    def __init__(self):
        self.committed: str = ""
        self.interim: str = ""
        self.revision: int = 0
        self.final_count: int = 0

    # -------------------------
    # PARTIAL HANDLING
    # -------------------------

    def apply_partial(self, text: str) -> None:
        """
        Replace the preview. NEVER committed by itself.
        """
        preview = str(text or "").strip()
        if preview == self.interim:
            return
        self.interim = preview
        self.revision += 1

    def discard_interim(self) -> None:
        if self.interim:
            self.interim = ""
            self.revision += 1

    # -------------------------
    # FINAL HANDLING
    # -------------------------

    def commit(self, text: str) -> bool:
        """
        Append a finished utterance and clear the preview.
        """
        final_text = str(text or "").strip()
        if not final_text:
            self.discard_interim()
            return False

        if self.committed:
            self.committed += " " + final_text
        else:
            self.committed = final_text

        self.interim = ""
        self.final_count += 1
        self.revision += 1
        return True

    def finalize(self, accept: Optional[Callable[[str], bool]] = None) -> str:
        """
        Fold any outstanding preview into the record and return it.
        """
        pending = self.interim
        if pending and (accept is None or accept(pending)):
            self.commit(pending)
        else:
            self.discard_interim()
        return self.committed

    def seed(self, text: str) -> None:
        """
        Start from a previous recording's transcript.
        """
        if self.committed:
            raise ValueError("seed() is only valid on an empty transcript")
        self.committed = str(text or "").strip()
        self.interim = ""
        self.revision += 1

    # -------------------------
    # VIEW
    # -------------------------

    def displayed(self) -> str:
        if not self.interim:
            return self.committed
        if not self.committed:
            return self.interim
        return f"{self.committed} {self.interim}"
