"""Fixed reference data: departments, their categories and building codes."""

from enum import Enum


class Department(str, Enum):
    SECRETARIAT = "secretariat"
    MOSQUE_PROSPERITY = "mosque_prosperity"
    EDUCATION = "education"
    SOCIAL_AFFAIRS = "social_affairs"
    ICT = "ict"

    @property
    def code(self) -> str:
        return DEPARTMENT_CODES[self]

    @property
    def label(self) -> str:
        return DEPARTMENT_LABELS[self]

    @classmethod
    def from_code(cls, code: str) -> "Department":
        for dept, dept_code in DEPARTMENT_CODES.items():
            if dept_code == code:
                return dept
        raise ValueError(f"Unknown department code: {code}")

    @classmethod
    def from_label(cls, label: str) -> "Department":
        for dept, dept_label in DEPARTMENT_LABELS.items():
            if dept_label == label:
                return dept
        raise ValueError(f"Unknown department: {label}")


class BuildingCode(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class DepreciationGroupType(str, Enum):
    BUILDING = "building"
    NON_BUILDING = "non_building"


DEPARTMENT_CODES: dict[Department, str] = {
    Department.SECRETARIAT: "ST",
    Department.MOSQUE_PROSPERITY: "KM",
    Department.EDUCATION: "PD",
    Department.SOCIAL_AFFAIRS: "SK",
    Department.ICT: "IT",
}

DEPARTMENT_LABELS: dict[Department, str] = {
    Department.SECRETARIAT: "Sekretariat",
    Department.MOSQUE_PROSPERITY: "Bidang Kemakmuran Masjid",
    Department.EDUCATION: "Bidang Pendidikan",
    Department.SOCIAL_AFFAIRS: "Bidang Sosial Kemasyarakatan",
    Department.ICT: "Bidang ICT",
}

# Departments missing here carry no categories at all.
CATEGORY_LABELS: dict[Department, dict[str, str]] = {
    Department.SECRETARIAT: {
        "fixed": "Aset Tetap",
        "inventory": "Inventaris Aset",
    },
    Department.EDUCATION: {
        "tki": "TKI",
        "sdi": "SDI",
        "tpa": "TPA",
        "madrasah": "Madrasah",
    },
    Department.SOCIAL_AFFAIRS: {
        "ayd": "Seksi AYD",
        "youth": "Seksi Remaja",
        "muamalah": "Seksi Muamalah dan Kematian",
    },
}


def categories_for(department: Department) -> dict[str, str]:
    """Return the category code -> label mapping for a department."""
    return CATEGORY_LABELS.get(department, {})


def category_code_for_label(department: Department, label: str) -> str:
    for code, category_label in categories_for(department).items():
        if category_label == label:
            return code
    valid = ", ".join(categories_for(department).values()) or "none"
    raise ValueError(
        f'Invalid category "{label}" for department "{department.label}". '
        f"Valid categories are: {valid}"
    )


# (code, name, type, years, rate)
DEFAULT_DEPRECIATION_GROUPS = [
    ("NB1", "Kelompok 1", DepreciationGroupType.NON_BUILDING, 4, 0.25),
    ("NB2", "Kelompok 2", DepreciationGroupType.NON_BUILDING, 8, 0.125),
    ("NB3", "Kelompok 3", DepreciationGroupType.NON_BUILDING, 16, 0.0625),
    ("NB4", "Kelompok 4", DepreciationGroupType.NON_BUILDING, 20, 0.05),
    ("BP", "Bangunan Permanen", DepreciationGroupType.BUILDING, 20, 0.05),
    ("BTP", "Bangunan Tidak Permanen", DepreciationGroupType.BUILDING, 10, 0.10),
]
