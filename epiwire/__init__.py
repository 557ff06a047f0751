# Open systems and patterns
from .systems import ContinuousMachine, ResourceSharer, OpenSystem, initial_state
from .patterns import WiringDiagram, Relation, Wire, OUTER, new_wiring_diagram, new_relation

# Composition
from .compose import compose, compose_directed, compose_undirected

# Integration
from .integrate import (
    StepMethod, Euler, RK4, DormandPrince, ScipyStepper, StochasticEuler,
    STEP_METHODS, get_step_method, integrate,
)
from .trajectory import Trajectory

# Errors
from .errors import (
    EpiwireError, PatternError, UnknownBox, UnknownPort, UnknownJunction,
    ArgumentIndexOutOfRange, DuplicateInputWire, UnconnectedPort,
    InterfaceMismatch, PortCountMismatch, ArityMismatch,
    DimensionMismatch, RuntimeDimensionMismatch, NumericalFailure,
)

__version__ = "0.1.0"
