"""Weight and fluid unit conversion. Values are stored in kg and ml."""

from enum import Enum

KG_TO_LB = 2.20462
ML_TO_OZ = 0.033814


class WeightUnit(str, Enum):
    KG = "kg"
    LB = "lb"


class FluidUnit(str, Enum):
    ML = "ml"
    OZ = "oz"


def weight_from_kg(kg: float, unit: WeightUnit = WeightUnit.KG) -> float:
    return kg * KG_TO_LB if unit is WeightUnit.LB else kg


def weight_to_kg(value: float, unit: WeightUnit = WeightUnit.KG) -> float:
    return value / KG_TO_LB if unit is WeightUnit.LB else value


def fluid_from_ml(ml: float, unit: FluidUnit = FluidUnit.ML) -> float:
    return ml * ML_TO_OZ if unit is FluidUnit.OZ else ml


def fluid_to_ml(value: float, unit: FluidUnit = FluidUnit.ML) -> float:
    return value / ML_TO_OZ if unit is FluidUnit.OZ else value
