# Helpers shared by the step modules and the environment file.


class BarHandler:
    def __init__(self, name: str):
        self.name = name
        self.dry_run = True
        self.closed = False

    def set_dry_run(self, state: bool) -> None:
        if self.closed:
            raise RuntimeError(f"Bar handler {self.name!r} is closed")
        self.dry_run = state

    def get_dry_run(self) -> bool:
        return self.dry_run

    def close(self) -> None:
        self.closed = True
