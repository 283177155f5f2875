import abc
import jax.numpy as jnp


def add_rates(dydt, rate_data, n_cmt):
    """
    Adds the zero-order input of each compartment to its derivative.

    `rate_data` may be longer than the state (fixed-amount steady state data
    carries the dose amount as a trailing element); only the first `n_cmt`
    entries are rates.
    """
    rates = jnp.asarray(rate_data)[:n_cmt]
    return dydt + rates


class PKBaseODE(abc.ABC):
    """
    Abstract Base Class for Pharmacokinetic ODE models.

    This class defines the structure for PK models described by ordinary
    differential equations with per-compartment zero-order inputs. Subclasses
    must implement the `rhs` method, which defines the differential equations
    for the masses in each compartment, and the `mass_to_depvar` method, which
    converts the predicted mass in the observed compartment (usually central)
    to the measured dependent variable (usually concentration).

    Both methods are static and written with `jax.numpy` so they can be traced
    by JAX and handed to diffrax without binding an instance.

    Attributes:
        n_cmt (int): Number of compartments (length of the state vector).
        param_names (tuple): Names of the model parameters, in the order
            expected in the `parameters` argument of `rhs`.
    """
    n_cmt = None
    param_names = ()

    @staticmethod
    @abc.abstractmethod
    def rhs(t, y, parameters, rate_data, integer_data, extra):
        """
        Defines the system of ordinary differential equations.

        Args:
            t (float): Current time point.
            y (jnp.ndarray): Array of current state variables
                (masses or amounts in compartments). The order depends
                on the specific model implementation.
            parameters (jnp.ndarray): Model parameters, order must match
                `param_names`.
            rate_data (array-like): Zero-order input rate into each compartment.
                Entries beyond the number of compartments are ignored.
            integer_data (sequence of int): Model specific flags, passed through.
            extra: Unused, kept for signature compatibility.

        Returns:
            jnp.ndarray: Derivatives [dy/dt] corresponding to the order of
                state variables in `y`.
        """
        pass

    @staticmethod
    @abc.abstractmethod
    def mass_to_depvar(pred_mass_central, parameters):
        """
        Converts the predicted mass in the central/observed compartment
        to the dependent variable (usually concentration).

        Args:
            pred_mass_central (float or jnp.ndarray): Predicted mass or amount
                in the central (or observed) compartment.
            parameters (jnp.ndarray): Model parameters, typically including the
                volume of the observed compartment (e.g., vd or v1).

        Returns:
            float or jnp.ndarray: The corresponding dependent variable value(s)
                (e.g., concentration = mass / volume).
        """
        pass


class OneCompartmentBolus_CL(PKBaseODE):
    """
    One-compartment IV model parameterized by Clearance (cl) and Volume (vd).

    States (y):
        y[0]: Mass in Central Compartment (amount)

    Parameters:
        cl (float): Clearance from the central compartment (volume/time).
        vd (float): Volume of distribution (volume).

    Common Derived Parameters:
        - Elimination rate constant: ke = cl / vd.
        - Steady state under constant infusion R0: Css = R0 / cl, i.e. the
          steady state central mass is R0 * vd / cl.
        - Steady state trough mass for repeated bolus D every tau:
          D * exp(-ke * tau) / (1 - exp(-ke * tau)).
    """
    n_cmt = 1
    param_names = ('cl', 'vd')

    @staticmethod
    def rhs(t, y, parameters, rate_data, integer_data, extra):
        cl, vd = parameters[0], parameters[1]
        central_mass = y[0]
        dCMdt = -(cl / vd) * central_mass
        return add_rates(jnp.stack([dCMdt]), rate_data, 1)

    @staticmethod
    def mass_to_depvar(pred_mass_central, parameters):
        vd = parameters[1]
        return pred_mass_central / vd


class OneCompartmentAbsorption(PKBaseODE):
    """
    One-compartment model with first-order absorption (Gut -> Central).
    Parameterized by Ka, Apparent Clearance (CL/F), Apparent Volume (Vd/F).

    States (y):
        y[0]: Mass in Central Compartment (amount)
        y[1]: Mass in Gut/Absorption Compartment (amount)
        Order: [Central, Gut]

    Handling Dosing:
        - Oral doses go to the gut, i.e. dosing compartment 2 (1-based).
        - Infusions into the central compartment use compartment 1.
    """
    n_cmt = 2
    param_names = ('ka', 'cl', 'vd')

    @staticmethod
    def rhs(t, y, parameters, rate_data, integer_data, extra):
        ka, cl, vd = parameters[0], parameters[1], parameters[2]
        central_mass, gut_mass = y[0], y[1]
        dCMdt = ka * gut_mass - (cl / vd) * central_mass
        dGdt = -ka * gut_mass
        return add_rates(jnp.stack([dCMdt, dGdt]), rate_data, 2)

    @staticmethod
    def mass_to_depvar(pred_mass_central, parameters):
        vd = parameters[2]
        return pred_mass_central / vd


class TwoCompartmentBolus(PKBaseODE):
    """Two-compartment IV model, states [central, peripheral]."""
    n_cmt = 2
    param_names = ('cl', 'v1', 'q', 'v2')

    @staticmethod
    def rhs(t, y, parameters, rate_data, integer_data, extra):
        cl, v1, q, v2 = parameters[0], parameters[1], parameters[2], parameters[3]
        central_mass, peripheral_mass = y[0], y[1]

        k10 = cl / v1
        k12 = q / v1
        k21 = q / v2

        dCMdt = k21 * peripheral_mass - k12 * central_mass - k10 * central_mass
        dPMdt = k12 * central_mass - k21 * peripheral_mass
        return add_rates(jnp.stack([dCMdt, dPMdt]), rate_data, 2)

    @staticmethod
    def mass_to_depvar(pred_mass_central, parameters):
        v1 = parameters[1]
        return pred_mass_central / v1


class TwoCompartmentAbsorption(PKBaseODE):
    """
    Two-compartment model with first-order absorption.

    States (y):
        y[0]: Mass in Central Compartment
        y[1]: Mass in Peripheral Compartment
        y[2]: Mass in Gut/Absorption Compartment
        Order: [Central, Peripheral, Gut]

    Parameters:
        ka, cl, v1, q, v2. Volumes are assumed positive; the usual ValueError
        checks are omitted because they are not JIT-friendly.
    """
    n_cmt = 3
    param_names = ('ka', 'cl', 'v1', 'q', 'v2')

    @staticmethod
    def rhs(t, y, parameters, rate_data, integer_data, extra):
        ka, cl, v1, q, v2 = (parameters[0], parameters[1], parameters[2],
                             parameters[3], parameters[4])
        central_mass, peripheral_mass, gut_mass = y[0], y[1], y[2]

        k10 = cl / v1
        k12 = q / v1
        k21 = q / v2

        dCMdt = ka * gut_mass + k21 * peripheral_mass - k12 * central_mass - k10 * central_mass
        dPMdt = k12 * central_mass - k21 * peripheral_mass
        dGdt = -ka * gut_mass
        return add_rates(jnp.stack([dCMdt, dPMdt, dGdt]), rate_data, 3)

    @staticmethod
    def mass_to_depvar(pred_mass_central, parameters):
        v1 = parameters[2]
        return pred_mass_central / v1


class OneCompartmentBolusMM(PKBaseODE):
    """
    One-compartment IV model with Michaelis-Menten elimination.

    The elimination is written in terms of mass:
    Vmax * (Mass/Vd) / (Km + Mass/Vd) = Vmax * Mass / (Km*Vd + Mass).
    """
    n_cmt = 1
    param_names = ('vmax', 'km', 'vd')

    @staticmethod
    def rhs(t, y, parameters, rate_data, integer_data, extra):
        vmax, km, vd = parameters[0], parameters[1], parameters[2]
        central_mass = y[0]

        denominator = km * vd + central_mass
        elimination_rate = jnp.where(
            jnp.abs(denominator) < 1e-12,
            0.0,
            vmax * central_mass / denominator
        )
        dCMdt = -elimination_rate
        return add_rates(jnp.stack([dCMdt]), rate_data, 1)

    @staticmethod
    def mass_to_depvar(pred_mass_central, parameters):
        vd = parameters[2]
        return jnp.where(
            jnp.abs(vd) < 1e-12,
            jnp.zeros_like(pred_mass_central),
            pred_mass_central / vd
        )
