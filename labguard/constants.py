from .qc.domain import ControlConfiguration

# Default analytes seeded into an empty store
INITIAL_QC_CONFIGS = {
    'glucose_cal': ControlConfiguration('glucose_cal', 'Glucose CAL', 112.0, 3.6, 'mg/dL'),
    'cholesterol': ControlConfiguration('cholesterol', 'Cholesterol', 197.0, 2.5, 'mg/dL'),
    'triglycerides': ControlConfiguration('triglycerides', 'Triglycerides', 154.0, 2.6, 'mg/dL'),
    'urea': ControlConfiguration('urea', 'Urea', 37.0, 2.7, 'mg/dL'),
    'creatinine_p': ControlConfiguration('creatinine_p', 'Creatinine P', 1.08, 0.1, 'mg/dL'),
    'uric_acid': ControlConfiguration('uric_acid', 'Uric Acid', 6.6, 0.5, 'mg/dL'),
    'ast': ControlConfiguration('ast', 'AST (GOT)', 19.0, 2.0, 'U/L'),
    'alt': ControlConfiguration('alt', 'ALT (GPT)', 29.0, 2.0, 'U/L'),
    'alp_dgkc': ControlConfiguration('alp_dgkc', 'ALP DGKC 137 / 131', 55.0, 5.5, 'U/L'),
    'amylase': ControlConfiguration('amylase', 'Amylase', 48.0, 5.0, 'U/L'),
    'ck_total': ControlConfiguration('ck_total', 'CK Total', 79.0, 8.0, 'U/L'),
    'hdl_eva_50': ControlConfiguration('hdl_eva_50', 'HDL EVA 50', 40.0, 3.0, 'mg/dL'),
    'cholesterol_p200': ControlConfiguration('cholesterol_p200', 'Cholesterol P200', 195.0, 4.6, 'mg/dL'),
}
