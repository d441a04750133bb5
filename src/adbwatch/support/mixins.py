
class ValueObjectMixin:
    """
    Equality, hashing and a readable representation for immutable records.
    Two instances are equal when they are of the same class and their attributes are equal.
    """

    def _values(self):
        return tuple(sorted(self.__dict__.items()))

    def __eq__(self, other):
        return isinstance(other, self.__class__) and self._values() == other._values()

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash((self.__class__, self._values()))

    def __repr__(self):
        return "%s(%s)" % (self.__class__.__name__,
                           ", ".join("%s=%r" % (k, v) for k, v in self._values()))
