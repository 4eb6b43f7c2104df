# ABOUTME: Short narrative lines describing the day's weather for the weather panel.
# ABOUTME: Commentary is picked through an injectable random.Random so output is reproducible in tests.

import random

from homeboard.models import DisplayMode, WeatherSummary

SUNNY_COMMENTS = [
    "Perfect excuse to touch grass!",
    "Time to make your vitamin D proud!",
    "Weather: 10/10, would recommend!",
    "Mother Nature is showing off today!",
    "This is your sign to cancel indoor plans!",
    "Sunscreen is your only homework today!",
    "Too nice to waste scrolling indoors!",
    "Golden hour lasting all day vibes!",
]

CLOUDY_COMMENTS = [
    "Cloudy but comfortable for activities!",
    "Perfect overcast for hiking!",
    "Soft lighting courtesy of Mother Nature!",
    "Natural sun protection included!",
    "No squinting required!",
    "Goldilocks weather: not too bright, just right!",
]

RAINY_COMMENTS = [
    "Perfect day to practice your couch potato skills!",
    "Today's forecast: maximum coziness required!",
    "Nature's way of saying 'read a book'!",
    "Weather: sponsored by hot chocolate!",
    "Rain is just the sky doing laundry!",
    "Perfect weather for your blanket fort empire!",
    "Rainy day = guilt-free lazy day!",
]

COLD_COMMENTS = [
    "Bundle up or stay cozy inside!",
    "Perfect excuse for hot drinks and blankets!",
    "Weather brought to you by sweater season!",
    "Perfect day for soup and comfort food!",
    "Your thermostat is the MVP today!",
    "Layers on layers: today's fashion trend!",
]


def _wet(condition: str) -> bool:
    return any(word in condition for word in ("rain", "shower", "storm", "drizzle"))


class WeatherNarrator:
    """Builds a one-paragraph description of a WeatherSummary.

    Pass a seed (or a ``random.Random``) to make the commentary deterministic.
    """

    def __init__(self, seed: int | None = None, rng: random.Random | None = None):
        self.rng = rng if rng is not None else random.Random(seed)

    def commentary_pool(self, summary: WeatherSummary) -> list[str]:
        temp = summary.high_f if summary.high_f is not None else summary.temperature_f
        condition = summary.description.lower()
        precipitation = any(h.precipitation_in > 0 for h in summary.hourly)

        if _wet(condition) or precipitation:
            return RAINY_COMMENTS
        if "snow" in condition or temp < 40:
            return COLD_COMMENTS
        if "clear" in condition or "sunny" in condition or (temp >= 70 and "cloud" not in condition):
            return SUNNY_COMMENTS
        if "cloud" in condition or "overcast" in condition or 55 <= temp < 70:
            return CLOUDY_COMMENTS
        return SUNNY_COMMENTS if temp >= 60 else RAINY_COMMENTS

    def commentary(self, summary: WeatherSummary) -> str:
        return self.rng.choice(self.commentary_pool(summary))

    def narrate(self, summary: WeatherSummary, mode: DisplayMode) -> str:
        temp = summary.high_f if summary.high_f is not None else summary.temperature_f
        condition = summary.description.lower()
        ahead = mode is DisplayMode.TOMORROW

        if temp >= 80:
            opening = "It's going to be a hot one!" if ahead else "It's hot out there!"
        elif temp >= 70:
            opening = "Perfect weather ahead!" if ahead else "Beautiful weather right now!"
        elif temp >= 60:
            opening = "Pleasant temperatures expected!" if ahead else "Pleasant conditions today!"
        elif temp >= 40:
            opening = "Pack a jacket - it'll be cool!" if ahead else "A bit cool - jacket weather!"
        else:
            opening = "Bundle up - it's going to be chilly!" if ahead else "Bundle up - it's chilly!"

        parts = [opening]
        if _wet(condition):
            parts.append("Keep an umbrella handy." if ahead else "Rain in the area.")
        elif "snow" in condition:
            parts.append("Snow is in the forecast!" if ahead else "Snow is falling!")
        elif "clear" in condition or "sunny" in condition:
            parts.append("Clear skies all day!" if ahead else "Clear and bright!")
        elif "cloud" in condition:
            parts.append("Cloudy but dry conditions." if ahead else "Overcast skies.")

        if summary.humidity_pct > 70:
            parts.append("Feeling humid.")
        elif summary.humidity_pct < 30:
            parts.append("Nice and dry.")

        if summary.wind_speed_mph > 15:
            parts.append("Quite breezy.")
        elif summary.wind_speed_mph > 8:
            parts.append("Light breeze.")

        wet_hours = sum(1 for h in summary.hourly if h.precipitation_in > 0)
        if wet_hours:
            # Forecast steps are three hours apart.
            parts.append(f"Expect about {wet_hours * 3}h of precipitation.")

        parts.append(self.commentary(summary))
        return " ".join(parts)
