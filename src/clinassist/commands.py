# Screen definitions: the user-entered fields, local validation, response formats and outbound message
# assembly for the drug lookup and clinical decision support commands.

from __future__ import annotations

from enum import Enum
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict

from . import weight
from .errors import InvalidInput


class ResponseFormat(str, Enum):
    full = "full"
    quick = "quick"
    parent = "parent"


class CommandInputs(BaseModel):
    """Validated snapshot of a screen's fields; identifies one cache generation."""
    model_config = ConfigDict(extra="forbid", frozen=True)


class DrugLookupInputs(CommandInputs):
    drug_name: str
    weight_kg: float
    weight_display: str
    age: str = ""
    indication: str = ""


class CdsInputs(CommandInputs):
    presentation: str
    key_concerns: str = ""


class Command:
    """
    One screen's behavior. The orchestrator calls prepare() to validate the
    current fields (raising InvalidInput) and build_message() for each format
    it needs to fetch.
    """

    key: str = ""
    formats: Tuple[ResponseFormat, ...] = (ResponseFormat.full, ResponseFormat.quick)
    temperature: float = 0.2
    max_tokens: int = 4096
    field_names: Tuple[str, ...] = ()

    def set_fields(self, **values: str) -> None:
        for name, value in values.items():
            if name not in self.field_names:
                raise AttributeError(f"{type(self).__name__} has no field {name!r}")
            setattr(self, name, value)

    def prepare(self) -> CommandInputs:
        raise NotImplementedError

    def build_message(self, inputs: CommandInputs, fmt: ResponseFormat) -> str:
        raise NotImplementedError


class DrugLookupCommand(Command):
    key = "drug"
    formats = (ResponseFormat.full, ResponseFormat.quick, ResponseFormat.parent)
    temperature = 0.2
    max_tokens = 4096
    field_names = ("drug_name", "weight_input", "age_input", "indication")

    def __init__(self) -> None:
        self.drug_name = ""
        self.weight_input = ""
        self.age_input = ""
        self.indication = ""

    def prepare(self) -> DrugLookupInputs:
        drug_name = self.drug_name.strip()
        if not drug_name:
            raise InvalidInput("Enter a medication.")
        weight_kg, weight_display = weight.parse(self.weight_input)
        return DrugLookupInputs(
            drug_name=drug_name,
            weight_kg=weight_kg,
            weight_display=weight_display,
            age=self.age_input.strip(),
            indication=self.indication.strip(),
        )

    def build_message(self, inputs: DrugLookupInputs, fmt: ResponseFormat) -> str:
        lines: List[str] = [
            "Request Type: Pediatric drug lookup",
            f"Drug: {inputs.drug_name}",
            f"Response Style: {fmt.value.upper()}",
            f"Patient Weight: {inputs.weight_display}",
            f"Patient Weight (kg): {inputs.weight_kg:.2f} kg",
        ]
        if inputs.age:
            lines.append(f"Patient Age: {inputs.age}")
        if inputs.indication:
            lines.append(f"Indication: {inputs.indication}")
        lines.append("Output Requirements: Mirror CLI structure with CALCULATED DOSE block filled out.")
        lines.append("Safety Checklist: verify dosing range, max single dose, max daily dose.")
        return "\n".join(lines)


class CdsCommand(Command):
    key = "cds"
    formats = (ResponseFormat.full, ResponseFormat.quick)
    temperature = 0.25
    max_tokens = 3072
    field_names = ("presentation", "key_concerns")

    def __init__(self) -> None:
        self.presentation = ""
        self.key_concerns = ""

    def prepare(self) -> CdsInputs:
        presentation = self.presentation.strip()
        if not presentation:
            raise InvalidInput("Describe the clinical presentation.")
        return CdsInputs(presentation=presentation, key_concerns=self.key_concerns.strip())

    def build_message(self, inputs: CdsInputs, fmt: ResponseFormat) -> str:
        blocks: List[str] = [
            "Request Type: Pediatric clinical decision support",
            f"Response Style: {fmt.value.upper()}",
            f"Clinical Presentation:\n{inputs.presentation}",
        ]
        if inputs.key_concerns:
            blocks.append(f"Provider Questions / Key Concerns:\n{inputs.key_concerns}")
        blocks.append("Output Requirements: highlight red flags, differential, diagnostics, management, and disposition.")
        blocks.append("Safety Checklist: escalate emergent findings first, note weight-based dosing if meds suggested.")
        return "\n\n".join(blocks)
