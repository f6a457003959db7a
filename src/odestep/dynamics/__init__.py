"""Dynamics module: differentiable systems, integrators, events and handlers."""

from .trajectory import Trajectory
from .base import (
    DerivativeFunction,
    DifferentiableSystem,
    DummyStepHandler,
    EventAction,
    StepHandler,
    SwitchingFunction,
)
from .exceptions import (
    IntegrationError,
    DerivativeError,
    IntegratorError,
    DimensionMismatchError,
    EventLocalizationError,
)
from .ode import ODESystem
from .handlers import TrajectoryRecorder, StatisticsStepHandler
from .switching import (
    DEFAULT_MAX_ITERATIONS,
    Event,
    EventOccurrence,
    SwitchState,
    SwitchingFunctionsHandler,
)
from .integrators import (
    IntegrationMethod,
    FixedStepIntegrator,
    EulerIntegrator,
    MidpointIntegrator,
    ClassicalRungeKuttaIntegrator,
    create_integrator,
    IntegrationResult,
    solve,
)

__all__ = [
    "Trajectory",
    "DerivativeFunction",
    "DifferentiableSystem",
    "DummyStepHandler",
    "EventAction",
    "StepHandler",
    "SwitchingFunction",
    "IntegrationError",
    "DerivativeError",
    "IntegratorError",
    "DimensionMismatchError",
    "EventLocalizationError",
    "ODESystem",
    "TrajectoryRecorder",
    "StatisticsStepHandler",
    "DEFAULT_MAX_ITERATIONS",
    "Event",
    "EventOccurrence",
    "SwitchState",
    "SwitchingFunctionsHandler",
    "IntegrationMethod",
    "FixedStepIntegrator",
    "EulerIntegrator",
    "MidpointIntegrator",
    "ClassicalRungeKuttaIntegrator",
    "create_integrator",
    "IntegrationResult",
    "solve",
]
