import random

import pytest


class ScriptedRandom(random.Random):
    """Random source that returns predetermined die faces, in order."""

    def __init__(self, faces):
        super().__init__(0)
        self._faces = list(faces)

    def randint(self, a, b):
        face = self._faces.pop(0)
        assert a <= face <= b, f"scripted face {face} outside [{a}, {b}]"
        return face


@pytest.fixture
def scripted():
    return ScriptedRandom
