class LaboratoryError(Exception):
    """Base class for laboratory directory errors"""


class DuplicateLaboratoryName(LaboratoryError):
    def __init__(self, name):
        self.name = name
        super().__init__(f"A laboratory named '{name}' already exists.")


class LaboratoryInUse(LaboratoryError):
    def __init__(self, laboratory, elections=None):
        self.laboratory = laboratory
        self.elections = list(elections or [])
        super().__init__(
            f"Laboratory '{laboratory.name}' still has students assigned for an upcoming or ongoing election."
        )
