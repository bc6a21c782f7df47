import json
from datetime import date, time

import pytest

from muezzin.core.entities import City, Country, District
from muezzin.provider.parsers import (
    ParsingError,
    parse_cities,
    parse_countries,
    parse_date,
    parse_districts,
    parse_prayer_times,
    parse_time,
)
from muezzin.provider.reference import CountryNames, get_country_names


def _prayer_row(day: str, fajr: str = "05:51") -> dict:
    return {
        "MiladiTarihKisa": day,
        "Imsak": fajr,
        "Gunes": "07:17",
        "Ogle": "13:17",
        "Ikindi": "16:31",
        "Aksam": "19:06",
        "Yatsi": "20:27",
        "HicriTarihUzun": "20 Şaban 1445",
    }


def test_parse_countries_json_uses_reference_names():
    content = json.dumps([
        {"UlkeAdi": "TÜRKİYE", "UlkeAdiEn": "TURKEY", "UlkeID": "2"},
        {"UlkeAdi": "BİLİNMEYEN ÜLKE", "UlkeAdiEn": "UNKNOWN LAND", "UlkeID": "999"},
    ])
    countries = parse_countries(content, "json", get_country_names())
    assert countries == [
        Country(2, "Turkey", "Türkiye", "Türkiye"),
        Country(999, "Unknown Land", "Bilinmeyen Ülke", "Bilinmeyen Ülke"),
    ]


def test_parse_countries_html_select():
    content = """
    <select name="Country">
      <option value="0">Seçiniz</option>
      <option value="2">T&#220;RK&#304;YE</option>
      <option value="13">ALMANYA</option>
    </select>
    """
    reference = {2: CountryNames("Turkey", "Türkiye", "Türkiye")}
    countries = parse_countries(content, "html", reference)
    assert countries == [
        Country(2, "Turkey", "Türkiye", "Türkiye"),
        Country(13, "Almanya", "Almanya", "Almanya"),
    ]


def test_parse_cities_html_select_skips_placeholder():
    content = '<select name="State"><option value="">Şehir Seçiniz</option><option value="539">İSTANBUL</option></select>'
    assert parse_cities(content, "html", 2) == [City(539, 2, "İstanbul", "İstanbul")]


def test_parse_cities_json_prefers_english_name():
    content = json.dumps([{"SehirAdi": "İSTANBUL", "SehirAdiEn": "ISTANBUL", "SehirID": "539"}])
    assert parse_cities(content, "json", 2) == [City(539, 2, "Istanbul", "İstanbul")]


def test_parse_districts_generic_keys():
    content = json.dumps([{"id": 9541, "trName": "KADIKÖY", "name": "KADIKOY"}])
    assert parse_districts(content, "json", 539) == [District(9541, 539, "Kadikoy", "Kadıköy")]


def test_parse_region_list_rejects_bad_ids_and_missing_keys():
    with pytest.raises(ParsingError) as e:
        parse_cities(json.dumps([{"SehirAdi": "İSTANBUL", "SehirID": "abc"}]), "json", 2)
    assert "abc" in str(e.value)
    with pytest.raises(ParsingError):
        parse_cities(json.dumps([{"SehirAdi": "İSTANBUL"}]), "json", 2)
    with pytest.raises(ParsingError):
        parse_cities(json.dumps({"SehirID": "539"}), "json", 2)
    with pytest.raises(ParsingError):
        parse_cities("<html>not json</html>", "json", 2)
    with pytest.raises(ParsingError):
        parse_cities("<div>no select</div>", "html", 2)


def test_parse_region_list_rejects_conflicting_duplicates():
    content = json.dumps([
        {"IlceAdi": "KADIKÖY", "IlceID": "9541"},
        {"IlceAdi": "ÜSKÜDAR", "IlceID": "9541"},
    ])
    with pytest.raises(ParsingError):
        parse_districts(content, "json", 539)


def test_parse_prayer_times_json_sorted_by_date():
    content = json.dumps([_prayer_row("02.03.2024"), _prayer_row("01.03.2024", fajr="05:52")])
    days = parse_prayer_times(content, "json", 9541)
    assert [d.date for d in days] == [date(2024, 3, 1), date(2024, 3, 2)]
    assert days[0].fajr == time(5, 52)
    assert days[0].isha == time(20, 27)
    assert days[0].district_id == 9541


def test_parse_prayer_times_html_table():
    content = """
    <table>
      <tr><th>Tarih</th><th>İmsak</th><th>Güneş</th><th>Öğle</th><th>İkindi</th><th>Akşam</th><th>Yatsı</th></tr>
      <tr><td>01.03.2024</td><td>05:52</td><td>07:18</td><td>13:17</td><td>16:30</td><td>19:05</td><td>20:26</td></tr>
      <tr><td>02.03.2024</td><td>05:51</td><td>07:17</td><td>13:17</td><td>16:31</td><td>19:06</td><td>20:27</td></tr>
    </table>
    """
    days = parse_prayer_times(content, "html", 9541)
    assert len(days) == 2
    assert days[1].date == date(2024, 3, 2)
    assert days[1].maghrib == time(19, 6)


def test_parse_prayer_times_rejects_bad_payloads():
    with pytest.raises(ParsingError):
        parse_prayer_times(json.dumps([_prayer_row("01.03.2024"), _prayer_row("01.03.2024")]), "json", 9541)
    with pytest.raises(ParsingError) as e:
        parse_prayer_times(json.dumps([_prayer_row("01.03.2024", fajr="25:99")]), "json", 9541)
    assert "25:99" in str(e.value)
    with pytest.raises(ParsingError):
        parse_prayer_times("<table><tr><td>01.03.2024</td><td>05:52</td></tr></table>", "html", 9541)
    with pytest.raises(ParsingError):
        parse_prayer_times("<table></table>", "html", 9541)


def test_parse_prayer_times_empty_json_list_is_empty():
    assert parse_prayer_times("[]", "json", 9541) == []


def test_parse_date_and_time_formats():
    assert parse_date("01.03.2024") == date(2024, 3, 1)
    assert parse_date("2024-03-01") == date(2024, 3, 1)
    assert parse_date("01/03/2024") == date(2024, 3, 1)
    assert parse_time("05:52") == time(5, 52)
    assert parse_time("05:52:30") == time(5, 52, 30)
    with pytest.raises(ParsingError):
        parse_date("not a date")


def test_parsing_error_truncates_fragment():
    error = ParsingError("Bad", "x" * 500)
    assert len(error.fragment) == 203
    assert error.fragment.endswith("...")
