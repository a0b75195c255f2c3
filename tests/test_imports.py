"""Smoke tests to verify package imports work."""

def test_package_imports():
    """Test that all main classes can be imported."""
    from pnevolve import (
        NumericPNSystem, SymbolicPNSystem, BinaryParams, InspiralSystem, Inspiral,
    )
    assert NumericPNSystem is not None
    assert SymbolicPNSystem is not None
    assert BinaryParams is not None
    assert InspiralSystem is not None
    assert Inspiral is not None

def test_version_exists():
    """Test that version is defined."""
    import pnevolve
    assert hasattr(pnevolve, '__version__')
    assert pnevolve.__version__ == "0.1.0"

def test_all_names_resolve():
    """Every name in __all__ is importable from the package."""
    import pnevolve
    for name in pnevolve.__all__:
        assert hasattr(pnevolve, name), name

def test_can_create_binary():
    """Test basic BinaryParams creation."""
    from pnevolve import BinaryParams
    binary = BinaryParams(M1=0.6, M2=0.4, v=0.2)
    assert binary.state.shape == (14,)
    assert binary.state[0] == 0.6

def test_approximant_registry():
    """The three approximants are registered by name."""
    from pnevolve import APPROXIMANTS
    assert set(APPROXIMANTS) == {"TaylorT1", "TaylorT4", "TaylorT5"}
