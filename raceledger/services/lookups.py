"""
Constant lookup tables: session names, result status codes and track aliases.
"""
from raceledger.models.enums import ResultStatus, SessionType

SESSION_TYPE_NAMES: dict[int, str] = {
    SessionType.UNKNOWN: "Unknown",
    SessionType.PRACTICE_1: "Practice 1",
    SessionType.PRACTICE_2: "Practice 2",
    SessionType.PRACTICE_3: "Practice 3",
    SessionType.SHORT_PRACTICE: "Short Practice",
    SessionType.QUALIFYING_1: "Q1",
    SessionType.QUALIFYING_2: "Q2",
    SessionType.QUALIFYING_3: "Q3",
    SessionType.SHORT_QUALIFYING: "Short Qualifying",
    SessionType.ONE_SHOT_QUALIFYING: "One Shot Qualifying",
    SessionType.RACE: "Race",
    SessionType.RACE_2: "Race 2",
    SessionType.RACE_3: "Race 3",
    SessionType.TIME_TRIAL: "Time Trial",
}

SESSION_TYPE_ABBREVIATIONS: dict[int, str] = {
    SessionType.UNKNOWN: "Unknown",
    SessionType.PRACTICE_1: "P1",
    SessionType.PRACTICE_2: "P2",
    SessionType.PRACTICE_3: "P3",
    SessionType.SHORT_PRACTICE: "Short P",
    SessionType.QUALIFYING_1: "Q1",
    SessionType.QUALIFYING_2: "Q2",
    SessionType.QUALIFYING_3: "Q3",
    SessionType.SHORT_QUALIFYING: "Short Q",
    SessionType.ONE_SHOT_QUALIFYING: "OSQ",
    SessionType.RACE: "Race",
    SessionType.RACE_2: "R2",
    SessionType.RACE_3: "R3",
    SessionType.TIME_TRIAL: "Time Trial",
}

# Final classification codes from the simulator's results packet
RESULT_STATUS_CODES: dict[int, ResultStatus] = {
    0: ResultStatus.INVALID,
    1: ResultStatus.INACTIVE,
    2: ResultStatus.ACTIVE,
    3: ResultStatus.FINISHED,
    4: ResultStatus.DNF,
    5: ResultStatus.DSQ,
    6: ResultStatus.NOT_CLASSIFIED,
    7: ResultStatus.RETIRED,
}

# Each group lists one circuit under every name the game or the league uses.
# The first entry is the canonical catalog name.
TRACK_ALIAS_GROUPS: tuple[tuple[str, ...], ...] = (
    ("Red Bull Ring", "Austria", "Spielberg"),
    ("Bahrain International Circuit", "Bahrain", "Sakhir", "Sakhir (Bahrain)"),
    ("Circuit de Monaco", "Monaco"),
    ("Silverstone Circuit", "Silverstone", "Great Britain"),
    ("Autodromo Nazionale di Monza", "Monza", "Italy"),
    ("Circuit de Spa-Francorchamps", "Spa", "Spa-Francorchamps", "Belgium"),
    ("Suzuka International Racing Course", "Suzuka", "Japan"),
    ("Yas Marina Circuit", "Abu Dhabi", "Yas Marina"),
    ("Circuit of the Americas", "Texas", "Austin", "COTA"),
    ("Autódromo José Carlos Pace", "Brazil", "Interlagos", "São Paulo"),
    ("Autódromo Hermanos Rodríguez", "Mexico", "Mexico City", "Hermanos Rodriguez"),
    ("Baku City Circuit", "Baku", "Baku (Azerbaijan)", "Azerbaijan"),
    ("Circuit Zandvoort", "Zandvoort", "Netherlands", "Holland"),
    ("Autodromo Enzo e Dino Ferrari", "Imola", "San Marino"),
    ("Autódromo Internacional do Algarve", "Portimão", "Portugal", "Algarve"),
    ("Jeddah Corniche Circuit", "Jeddah", "Saudi Arabia"),
    ("Miami International Autodrome", "Miami", "Miami Gardens"),
    ("Las Vegas Strip Circuit", "Las Vegas", "Nevada"),
    ("Lusail International Circuit", "Losail", "Qatar"),
    ("Circuit de Barcelona-Catalunya", "Catalunya", "Barcelona", "Montmelo"),
    ("Circuit Gilles Villeneuve", "Montreal", "Canada"),
    ("Hungaroring", "Hungary"),
    ("Marina Bay Street Circuit", "Singapore"),
    ("Hockenheimring", "Hockenheim"),
    ("Circuit Paul Ricard", "Paul Ricard", "Le Castellet"),
    ("Shanghai International Circuit", "Shanghai", "China"),
    ("Albert Park Circuit", "Melbourne", "Australia"),
    ("Sochi Autodrom", "Sochi"),
    ("Hanoi Street Circuit", "Hanoi"),
)


def normalize_track_name(name: str | None) -> str:
    """Case-fold, treat underscores as spaces and collapse whitespace."""
    if not name:
        return ""
    return " ".join(name.replace("_", " ").split()).casefold()


_ALIAS_INDEX: dict[str, tuple[str, ...]] = {
    normalize_track_name(alias): group
    for group in TRACK_ALIAS_GROUPS
    for alias in group
}


def track_aliases(track_name: str) -> list[str]:
    """Other names of the same circuit, in table order. Empty when unknown."""
    key = normalize_track_name(track_name)
    group = _ALIAS_INDEX.get(key, ())
    return [alias for alias in group if normalize_track_name(alias) != key]


def canonical_track_name(track_name: str) -> str:
    """Catalog name for a circuit, or the trimmed input when it is not in the table."""
    group = _ALIAS_INDEX.get(normalize_track_name(track_name))
    if group:
        return group[0]
    return " ".join(track_name.split()) if track_name else "Unknown Track"


def session_type_name(session_type: int) -> str:
    return SESSION_TYPE_NAMES.get(session_type, "Unknown")


def session_type_abbreviation(session_type: int) -> str:
    return SESSION_TYPE_ABBREVIATIONS.get(session_type, "Unknown")


def parse_result_status(value: int | str | ResultStatus | None) -> ResultStatus:
    """Accept a simulator code, a status name or an enum member."""
    if value is None:
        return ResultStatus.FINISHED
    if isinstance(value, ResultStatus):
        return value
    if isinstance(value, int):
        return RESULT_STATUS_CODES.get(value, ResultStatus.INVALID)
    text = str(value).strip().lower()
    if text.isdigit():
        return RESULT_STATUS_CODES.get(int(text), ResultStatus.INVALID)
    aliases = {"disqualified": ResultStatus.DSQ, "not_classified": ResultStatus.NOT_CLASSIFIED}
    if text in aliases:
        return aliases[text]
    try:
        return ResultStatus(text)
    except ValueError:
        return ResultStatus.INVALID
