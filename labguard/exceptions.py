class QCError(Exception):
    """Base class for QC domain errors"""


class AnalyteNotFoundError(QCError):
    def __init__(self, analyte_id: str):
        self.analyte_id = analyte_id
        super().__init__(f"Analyte '{analyte_id}' not found")


class DuplicateAnalyteError(QCError):
    def __init__(self, analyte_id: str):
        self.analyte_id = analyte_id
        super().__init__(f"Analyte '{analyte_id}' already exists")


class MeasurementNotFoundError(QCError):
    def __init__(self, analyte_id: str, measurement_id: str):
        self.analyte_id = analyte_id
        self.measurement_id = measurement_id
        super().__init__(f"Measurement '{measurement_id}' not found for analyte '{analyte_id}'")


class InvalidMeasurementError(QCError):
    """Raised for non-finite or missing measurement values"""


class InvalidConfigurationError(QCError):
    """Raised for non-finite mean/SD or a negative SD"""


class NoDataToExportError(QCError):
    def __init__(self):
        super().__init__("No QC results found to export")
