"""Subway line segments used for localized crowding sampling."""

import logging
from types import MappingProxyType
from typing import List, Optional, Tuple

from .models import Segment

logger = logging.getLogger(__name__)

# Ordered segments per line, each an ordered tuple of parent station ids
LINE_SEGMENTS = MappingProxyType({
    # Broadway-7th Ave Lines (Red)
    "1": (
        Segment("1-bronx", "Bronx", ("101", "103", "104", "106", "107", "108", "109", "110", "111")),
        Segment("1-upper", "Upper Manhattan", ("112", "113", "114", "115", "116", "117", "118", "119", "120", "121", "122", "123", "124")),
        Segment("1-midtown", "Midtown", ("125", "126", "127", "128", "129", "130")),
        Segment("1-lower", "Lower Manhattan", ("131", "132", "133", "134", "135", "136", "137", "138", "139", "142")),
    ),

    "2": (
        Segment("2-bronx", "Bronx", ("201", "204", "205", "206", "207", "208", "209", "210", "211", "212", "213", "214", "215", "216", "217", "218", "219", "220", "221", "222")),
        Segment("2-harlem", "Harlem", ("224", "225", "226", "227", "621", "622", "623", "624", "625")),
        Segment("2-midtown", "Midtown Express", ("120", "626", "627", "123", "628", "629", "631", "127", "128", "132")),
        Segment("2-brooklyn", "Brooklyn", ("137", "228", "229", "230", "231", "232", "233", "234", "235", "236", "237", "238", "239", "241", "242", "243", "244", "245", "246", "247", "248", "249", "250", "251")),
    ),

    "3": (
        Segment("3-harlem", "Harlem", ("301", "302")),
        Segment("3-upper", "Upper Manhattan", ("224", "225", "226", "227")),
        Segment("3-midtown", "Midtown", ("120", "123", "125", "127", "128", "132")),
        Segment("3-brooklyn", "Brooklyn", ("232", "233", "234", "235", "236", "237", "238", "239", "247", "248", "249", "250", "251", "301", "302")),
    ),

    # Lexington Ave Lines (Green)
    "4": (
        Segment("4-bronx", "Bronx", ("401", "402", "405", "406", "407", "408", "409", "410", "413", "414", "415", "416", "418", "419", "420", "621", "222")),
        Segment("4-upper", "Upper East Side", ("621", "622", "623", "624", "625", "626", "627", "628", "629")),
        Segment("4-midtown", "Midtown Express", ("631", "632", "633", "634", "635", "636")),
        Segment("4-lower", "Lower Manhattan", ("637", "638", "639", "640")),
        Segment("4-brooklyn", "Brooklyn", ("232", "234", "235", "414", "415", "416", "417", "418", "419", "420", "423")),
    ),

    "5": (
        Segment("5-bronx", "Bronx", ("501", "502", "503", "504", "505", "506", "507", "508", "509", "510", "511", "512", "513", "514", "222")),
        Segment("5-upper", "Upper East Side", ("621", "622", "623", "624", "625", "626", "627", "628", "629")),
        Segment("5-midtown", "Midtown Express", ("631", "632", "633", "634", "635", "636")),
        Segment("5-lower", "Lower Manhattan & Brooklyn", ("637", "638", "639", "640", "232", "234", "235", "515", "516", "517", "518", "519", "520")),
    ),

    "6": (
        Segment("6-bronx", "Bronx", ("601", "602", "606", "607", "608", "609", "610", "611", "612", "613", "614", "615", "616", "617", "618", "619", "620")),
        Segment("6-upper", "Upper East Side", ("621", "622", "623", "624", "625", "626", "627", "628", "629")),
        Segment("6-midtown", "Midtown & Lower", ("631", "632", "633", "634", "635", "636", "637", "638", "639", "640")),
    ),

    # Flushing Line (Purple)
    "7": (
        Segment("7-queens-east", "Eastern Queens", ("701", "702", "705", "706", "707", "708", "709", "710", "711", "712", "713", "714", "715")),
        Segment("7-queens-central", "Central Queens", ("716", "718", "719", "720", "721", "722", "723", "724", "725")),
        Segment("7-manhattan", "Manhattan", ("127",)),
    ),

    # 8th Ave Lines (Blue)
    "A": (
        Segment("A-inwood", "Inwood", ("A02", "A03", "A05", "A06", "A07", "A09", "A10", "A11", "A12")),
        Segment("A-harlem", "Harlem", ("A14", "A15", "D20", "A24", "A25", "A27", "A28", "A30", "A31")),
        Segment("A-midtown", "Midtown", ("A32", "A33", "A34", "A36", "A38", "A40", "A41", "A42")),
        Segment("A-brooklyn", "Brooklyn", ("A43", "A44", "A45", "A46", "A48", "A50", "A51", "A52", "A53", "A54", "A55", "A57", "A59", "A60", "A61", "A63", "A64", "A65")),
        Segment("A-rockaway", "Rockaway", ("H01", "H02", "H03", "H04", "H06", "H08", "H09", "H10", "H11", "H12", "H13", "H14", "H15"), branch="rockaway"),
        Segment("A-lefferts", "Lefferts Blvd", ("A60", "A61", "A63", "A64", "A65"), branch="lefferts"),
    ),

    "C": (
        Segment("C-upper", "Upper Manhattan", ("A02", "A03", "A05", "A06", "A07", "A09", "A10", "A11", "A12", "A14", "A15", "A16", "A17", "A18", "A19", "A20", "A21", "A22", "A24", "A25", "A27", "A28", "A30")),
        Segment("C-midtown", "Midtown", ("A32", "A33", "A34", "A36", "A38", "A40", "A41", "A42")),
        Segment("C-brooklyn", "Brooklyn", ("A43", "A44", "A45", "A46", "A48", "A50", "A51", "A52", "A53", "A55")),
    ),

    "E": (
        Segment("E-queens", "Queens", ("E01", "F01", "F02", "F03", "F04", "F05", "F06", "G05", "G06", "G07", "G08", "G09", "G10", "G11", "G12", "G13", "G14")),
        Segment("E-midtown", "Midtown", ("D15", "D14", "A27", "A28", "A31", "A32", "A34", "A36", "A38", "A40", "A41", "A42")),
        Segment("E-downtown", "Downtown", ("D12", "D11", "D10", "D09", "138")),
    ),

    # 6th Ave Lines (Orange)
    "B": (
        Segment("B-bronx", "Bronx", ("D03", "D04", "D05", "D06", "D07", "D08", "D09", "D10", "D11", "D12", "D13")),
        Segment("B-manhattan", "Manhattan", ("D14", "D15", "D16", "D17", "D18", "D19", "D20", "D21")),
        Segment("B-brooklyn", "Brooklyn", ("D22", "D24", "D25", "D26", "D27", "D28", "D29", "D30", "D31", "D35", "D37", "D39", "D40", "D41", "D42", "D43")),
    ),

    "D": (
        Segment("D-bronx", "Bronx", ("D01", "D03", "D04", "D05", "D06", "D07", "D08", "D09", "D10", "D11", "D12", "D13")),
        Segment("D-manhattan", "Manhattan", ("D14", "D15", "D16", "D17", "D18", "D19", "D20", "D21")),
        Segment("D-brooklyn", "Brooklyn", ("D22", "D24", "D25", "D26", "D27", "D28", "D29", "D30", "D31", "D35", "D37", "D39", "D40", "D41", "D42", "D43")),
    ),

    "F": (
        Segment("F-queens", "Queens", ("F01", "F02", "F03", "F04", "F05", "F06", "G05", "G06", "G07", "G08", "G09", "F09", "F11", "F12", "F14", "F15", "F16", "F18", "F20")),
        Segment("F-manhattan", "Manhattan", ("F21", "D20", "D19", "D18", "D17", "D16", "A36", "D11", "D10", "F23", "F24", "F25", "F26", "F27")),
        Segment("F-brooklyn", "Brooklyn", ("F29", "F30", "F31", "F32", "F33", "F34", "F35", "F36", "F38", "F39")),
    ),

    "M": (
        Segment("M-queens-brooklyn", "Queens & Brooklyn", ("M01", "M04", "M05", "M06", "M08", "M09", "M10", "M11", "M12", "M13", "M14", "M16", "M18", "M19", "M20", "M21", "M22", "M23")),
        Segment("M-manhattan", "Manhattan", ("D16", "D17", "D18", "D19", "D20", "D21", "D22")),
    ),

    # Crosstown (Lime)
    "G": (
        Segment("G-queens", "Queens", ("G20", "G22", "G24", "G26", "G28", "G29")),
        Segment("G-brooklyn", "Brooklyn", ("G30", "G31", "G32", "G33", "G34", "G35", "G36")),
    ),

    # Nassau St Lines (Brown)
    "J": (
        Segment("J-queens", "Queens", ("M01", "M04", "M05", "M06", "M08", "M09", "M10", "M11")),
        Segment("J-brooklyn", "Brooklyn", ("M12", "M13", "M14", "M16", "M18", "M19", "M20", "M21", "M22", "M23", "M26", "M27", "M28", "M29", "M30", "J12", "J13", "J14", "J15", "J16", "J17", "J19", "J20", "J21", "J22", "J23", "J24", "J27", "J28", "J29", "J30", "J31")),
    ),

    "Z": (
        Segment("Z-skip-stop", "Skip Stop Service", ("J12", "J13", "J14", "J15", "J16", "J17", "J19", "J20", "J21", "J22", "J23", "J24", "J27", "J28", "J29", "J30", "J31")),
    ),

    # Canarsie (Gray)
    "L": (
        Segment("L-manhattan", "Manhattan", ("L01", "L02", "L03", "L05", "L06")),
        Segment("L-brooklyn", "Brooklyn", ("L08", "L10", "L11", "L12", "L13", "L14", "L15", "L16", "L17", "L19", "L20", "L21", "L22", "L24", "L25", "L26", "L27", "L28", "L29")),
    ),

    # Broadway (Yellow)
    "N": (
        Segment("N-queens", "Queens", ("R01", "R03", "R04", "R05", "R06", "R08", "R09", "R11", "R13", "R14", "R15", "R16")),
        Segment("N-manhattan", "Manhattan", ("R17", "R18", "R19", "R20", "R21", "R22", "R23", "R24", "R25", "R26", "R27", "R28", "R29")),
        Segment("N-brooklyn", "Brooklyn", ("R30", "R31", "R32", "R33", "R34", "R35", "R36", "R39", "R40", "R41", "R42", "R43", "R44", "R45", "D35", "D37", "D39", "D40", "D41", "D42", "D43")),
    ),

    "Q": (
        Segment("Q-brooklyn-east", "Eastern Brooklyn", ("D24", "D25", "D26", "D27", "D28", "D29", "D30", "D31")),
        Segment("Q-brooklyn-west", "Western Brooklyn", ("D35", "D37", "D39", "D40", "D41", "D42", "D43", "R30", "R31")),
        Segment("Q-manhattan", "Manhattan", ("R16", "R17", "R18", "R19", "R20", "R21", "R23", "R24", "R25", "R26", "R27", "R28")),
    ),

    "R": (
        Segment("R-queens", "Queens", ("R01", "R03", "R04", "R05", "R06", "R08", "R09", "R11")),
        Segment("R-manhattan", "Manhattan", ("R16", "R17", "R18", "R19", "R20", "R21", "R22", "R23", "R24", "R25", "R26", "R27", "R28", "R29")),
        Segment("R-brooklyn", "Brooklyn", ("R30", "R31", "R32", "R33", "R34", "R35", "R36", "R39", "R40", "R41", "R42", "R43", "R44", "R45")),
    ),

    "W": (
        Segment("W-queens", "Queens", ("R01", "R03", "R04", "R05", "R06", "R08", "R09", "R11")),
        Segment("W-manhattan", "Manhattan", ("R16", "R17", "R18", "R19", "R20", "R21", "R22", "R23", "R24", "R25", "R26", "R27", "R28", "R29")),
        Segment("W-brooklyn", "Brooklyn", ("R30", "R31", "R32", "R33")),
    ),

    # Shuttles
    "S": (
        Segment("S-42nd", "42nd St Shuttle", ("901", "902")),
    ),

    "SF": (
        Segment("SF-shuttle", "Franklin Av Shuttle", ("S01", "S03", "S04")),
    ),

    "SR": (
        Segment("SR-shuttle", "Rockaway Park Shuttle", ("H19", "H15", "H14", "H13", "H12")),
    ),

    # Staten Island Railway
    "SIR": (
        Segment("SIR-north", "North Shore", ("S01", "S02", "S03", "S04", "S05", "S06", "S07", "S08", "S09")),
        Segment("SIR-south", "South Shore", ("S10", "S11", "S12", "S13", "S14", "S15", "S16", "S17", "S18", "S19", "S20", "S21")),
    ),
})


def get_line_segments(route_id: str) -> Tuple[Segment, ...]:
    """Segments of a line in order, empty for unknown lines."""
    return tuple(LINE_SEGMENTS.get(route_id, ()))


def get_segment(route_id: str, segment_id: str, required: bool = False) -> Optional[Segment]:
    """
    Look up one segment of a line.

    Args:
        route_id: Subway line.
        segment_id: Segment id, e.g. "A-midtown".
        required: Raise instead of returning None when the segment is unknown.

    Raises:
        ValueError: If required and the segment does not exist.
    """
    for segment in LINE_SEGMENTS.get(route_id, ()):
        if segment.id == segment_id:
            return segment
    if required:
        raise ValueError(f"Unknown segment {segment_id} on line {route_id}")
    return None


def get_segment_stations(route_id: str, segment_id: str) -> List[str]:
    segment = get_segment(route_id, segment_id)
    return list(segment.stations) if segment else []


def find_station_segment(route_id: str, station_id: str) -> Optional[Segment]:
    """First segment of a line containing a station."""
    for segment in LINE_SEGMENTS.get(route_id, ()):
        if station_id in segment.stations:
            return segment
    return None


def total_segment_count() -> int:
    return sum(len(segments) for segments in LINE_SEGMENTS.values())
