"""Changes an informer observed, handed to every subscribed stream in the
order they happened.
"""
import dataclasses


@dataclasses.dataclass(frozen=True, eq=False)
class CreateEvent:
    obj: object

    def __repr__(self):
        return f'<Create {self.obj!r}>'


@dataclasses.dataclass(frozen=True, eq=False)
class UpdateEvent:
    old: object
    new: object

    @property
    def obj(self):
        return self.new

    def __repr__(self):
        return f'<Update {self.old!r} -> {self.new!r}>'


@dataclasses.dataclass(frozen=True, eq=False)
class DeleteEvent:
    # Last state the informer knew of.
    obj: object

    def __repr__(self):
        return f'<Delete {self.obj!r}>'
