"""
Model specification for the general linear model.

A ModelSpecification names the dependent variable(s), the fixed factors,
the covariates and the interaction terms of a univariate GLM, together with
the sum-of-squares convention and the display options. It is immutable once
built; ModelSpecification.build() is the validating constructor.

Terms are identified by their component set: "A*B" and "B*A" are the same
term, and a term T contains a term F when F's components are a proper
subset of T's. The intercept is contained in every other term.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Iterable

from pyglm.core.exceptions import ValidationError, NoTermsError
from pyglm.core.validation import check_choice, check_probability


INTERCEPT = 'Intercept'


class SSType(IntEnum):
    """Sum-of-squares convention."""
    TYPE_I = 1
    TYPE_II = 2
    TYPE_III = 3
    TYPE_IV = 4

    @property
    def label(self) -> str:
        return ('I', 'II', 'III', 'IV')[self.value - 1]

    @classmethod
    def parse(cls, value: Any) -> 'SSType':
        """
        Normalise an SS type given as 1-4, 'I'-'IV' or an SSType.

        Raises:
            ValidationError: If value is not a recognised SS type
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            if key.startswith('TYPE'):
                key = key[4:].strip(' _')
            roman = {'I': 1, 'II': 2, 'III': 3, 'IV': 4}
            if key in roman:
                return cls(roman[key])
            if key.isdigit():
                value = int(key)
        if isinstance(value, bool):
            raise ValidationError(f"ss_type: expected 1-4 or 'I'-'IV', got {value!r}")
        if isinstance(value, int) and 1 <= value <= 4:
            return cls(value)
        raise ValidationError(f"ss_type: expected 1-4 or 'I'-'IV', got {value!r}")


@dataclass(frozen=True)
class Term:
    """
    One model term: the intercept, a main effect, or an interaction.

    Attributes:
        name: Display name, components joined by '*' ('Intercept' for the
            intercept term)
        factors: Factor components in declaration order
        covariates: Covariate components in declaration order
    """
    name: str
    factors: tuple[str, ...]
    covariates: tuple[str, ...]

    @property
    def components(self) -> frozenset[str]:
        return frozenset(self.factors) | frozenset(self.covariates)

    @property
    def is_intercept(self) -> bool:
        return not self.factors and not self.covariates

    def contains(self, other: 'Term') -> bool:
        """True when other's components are a proper subset of this term's."""
        return other.components < self.components


def parse_term(text: str) -> tuple[str, ...]:
    """Split an interaction string such as 'A*B' or 'A:B' into its components."""
    if not isinstance(text, str):
        raise ValidationError(f"term: expected a string such as 'A*B', got {text!r}")
    parts = tuple(p.strip() for p in text.replace(':', '*').split('*'))
    if not parts or any(p == '' for p in parts):
        raise ValidationError(f"term: malformed term {text!r}")
    if len(set(parts)) != len(parts):
        raise ValidationError(f"term: {text!r} repeats a component")
    return parts


def _name_tuple(values: Any, name: str) -> tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        values = [values]
    result = tuple(values)
    for v in result:
        if not isinstance(v, str) or not v.strip():
            raise ValidationError(f"{name}: variable names must be non-empty strings, got {v!r}")
    if len(set(result)) != len(result):
        raise ValidationError(f"{name}: duplicate names in {list(result)}")
    return result


def _emmeans_terms(values: Any, factors: tuple[str, ...]) -> tuple[str, ...]:
    """Normalize marginal-mean terms to 'OVERALL' or factors in declaration order."""
    if values is None:
        return ()
    texts = [values] if isinstance(values, str) else list(values)
    result: list[str] = []
    for text in texts:
        if isinstance(text, str) and text.strip().upper() == 'OVERALL':
            name = 'OVERALL'
        else:
            parts = parse_term(text)
            unknown = [p for p in parts if p not in factors]
            if unknown:
                raise ValidationError(f"emmeans {text!r}: {unknown} not declared as factors")
            name = '*'.join(f for f in factors if f in parts)
        if name in result:
            raise ValidationError(f"emmeans: {text!r} requested twice")
        result.append(name)
    return tuple(result)


def _adjustment(value: Any) -> str:
    value = value.lower() if isinstance(value, str) else value
    check_choice(value, ('lsd', 'bonferroni', 'sidak'), 'emmeans_adjustment')
    return value


@dataclass(frozen=True)
class ModelSpecification:
    """
    Immutable GLM model specification.

    Construct via ModelSpecification.build(), which validates every field.

    Attributes:
        dependents: Dependent variable names (at least one)
        factors: Fixed-factor names, in declaration order
        covariates: Covariate names, in declaration order
        terms: Model terms (excluding the intercept) in model order
        intercept: Whether the model includes an intercept
        ss_type: Sum-of-squares convention
        significance_level: Alpha for observed power
        confidence_level: Level of parameter confidence intervals
        weight: Name of a WLS case-weight variable, or None
        estimate_effect_size: Report partial eta-squared
        observed_power: Report noncentrality and observed power
        parameter_estimates: Compute the parameter estimates table
        lack_of_fit: Compute the lack-of-fit test
        levene: Compute Levene's test of equal error variance
        heteroscedasticity: Compute the White, Breusch-Pagan and F tests
        emmeans: Terms whose estimated marginal means are reported,
            'OVERALL' or factor-only terms in declaration order
        emmeans_adjustment: Pairwise comparison adjustment, one of
            'lsd', 'bonferroni', 'sidak'
    """
    dependents: tuple[str, ...]
    factors: tuple[str, ...]
    covariates: tuple[str, ...]
    terms: tuple[Term, ...]
    intercept: bool = True
    ss_type: SSType = SSType.TYPE_III
    significance_level: float = 0.05
    confidence_level: float = 0.95
    weight: str | None = None
    estimate_effect_size: bool = True
    observed_power: bool = True
    parameter_estimates: bool = True
    lack_of_fit: bool = False
    levene: bool = False
    heteroscedasticity: bool = False
    emmeans: tuple[str, ...] = ()
    emmeans_adjustment: str = 'lsd'

    @staticmethod
    def build(
        dependents: str | Iterable[str],
        factors: Iterable[str] | str | None = None,
        covariates: Iterable[str] | str | None = None,
        interactions: Iterable[str] | None = None,
        *,
        terms: Iterable[str] | None = None,
        intercept: bool = True,
        ss_type: Any = 3,
        significance_level: float = 0.05,
        confidence_level: float = 0.95,
        weight: str | None = None,
        estimate_effect_size: bool = True,
        observed_power: bool = True,
        parameter_estimates: bool = True,
        lack_of_fit: bool = False,
        levene: bool = False,
        heteroscedasticity: bool = False,
        emmeans: Iterable[str] | str | None = None,
        emmeans_adjustment: str = 'lsd',
    ) -> 'ModelSpecification':
        """
        Build and validate a model specification.

        Args:
            dependents: Dependent variable name, or several names
            factors: Fixed-factor names
            covariates: Covariate names
            interactions: Interaction terms as 'A*B' strings, appended after
                the main effects
            terms: Explicit model terms in model order (main effects and
                interactions). Overrides the default order and may not be
                combined with interactions.
            intercept: Include an intercept
            ss_type: 1-4, 'I'-'IV' or an SSType. Default Type III.
            significance_level: Alpha in (0, 1)
            confidence_level: Confidence level in (0, 1)
            weight: Optional case-weight variable name
            emmeans: 'OVERALL' and/or factor terms such as 'A' or 'A*B'
            emmeans_adjustment: 'lsd', 'bonferroni' or 'sidak'

        Returns:
            ModelSpecification

        Raises:
            ValidationError: On any invalid field
            NoTermsError: If there is no intercept and no term
        """
        dep = _name_tuple(dependents, 'dependents')
        if not dep:
            raise ValidationError("dependents: at least one dependent variable is required")
        fac = _name_tuple(factors, 'factors')
        cov = _name_tuple(covariates, 'covariates')

        both = set(fac) & set(cov)
        if both:
            raise ValidationError(
                f"{sorted(both)}: declared as both factor and covariate"
            )
        predictors = set(fac) | set(cov)
        for name in dep:
            if name in predictors:
                raise ValidationError(f"{name}: dependent variable also used as a predictor")
        if weight is not None:
            if not isinstance(weight, str) or not weight.strip():
                raise ValidationError(f"weight: expected a variable name, got {weight!r}")
            if weight in predictors or weight in dep:
                raise ValidationError(f"weight: {weight!r} is also a model variable")

        if terms is not None and interactions:
            raise ValidationError(
                "terms: give either an explicit term list or interactions, not both"
            )
        if terms is not None:
            texts = [terms] if isinstance(terms, str) else list(terms)
        else:
            texts = list(fac) + list(cov) + list(interactions or ())

        built: list[Term] = []
        seen: dict[frozenset[str], str] = {}
        for text in texts:
            parts = parse_term(text)
            unknown = [p for p in parts if p not in predictors]
            if unknown:
                raise ValidationError(
                    f"term {text!r}: {unknown} not declared as factor or covariate"
                )
            term = Term(
                name='*'.join(parts),
                factors=tuple(f for f in fac if f in parts),
                covariates=tuple(c for c in cov if c in parts),
            )
            if term.components in seen:
                raise ValidationError(
                    f"term {text!r}: duplicates term {seen[term.components]!r}"
                )
            seen[term.components] = term.name
            built.append(term)

        if not intercept and not built:
            raise NoTermsError("Model has no intercept and no terms")

        return ModelSpecification(
            dependents=dep,
            factors=fac,
            covariates=cov,
            terms=tuple(built),
            intercept=bool(intercept),
            ss_type=SSType.parse(ss_type),
            significance_level=check_probability(significance_level, 'significance_level'),
            confidence_level=check_probability(confidence_level, 'confidence_level'),
            weight=weight,
            estimate_effect_size=bool(estimate_effect_size),
            observed_power=bool(observed_power),
            parameter_estimates=bool(parameter_estimates),
            lack_of_fit=bool(lack_of_fit),
            levene=bool(levene),
            heteroscedasticity=bool(heteroscedasticity),
            emmeans=_emmeans_terms(emmeans, fac),
            emmeans_adjustment=_adjustment(emmeans_adjustment),
        )

    @property
    def dependent(self) -> str:
        """The first dependent variable."""
        return self.dependents[0]

    @property
    def model_terms(self) -> tuple[Term, ...]:
        """All terms in model order, intercept first when present."""
        if self.intercept:
            return (Term(INTERCEPT, (), ()),) + self.terms
        return self.terms

    @property
    def term_names(self) -> tuple[str, ...]:
        return tuple(t.name for t in self.model_terms)

    def variables(self) -> tuple[str, ...]:
        """Every variable a case must have for listwise deletion."""
        names = list(self.dependents) + list(self.factors) + list(self.covariates)
        if self.weight is not None:
            names.append(self.weight)
        return tuple(names)
