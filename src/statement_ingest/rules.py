"""Ordered merchant/category rule table.

Matching is keyword search on the lower-cased, whitespace-collapsed
description. Keywords match whole words, so "ola" matches "OLA RIDE" but not
"COCA COLA" or "OLAY". A trailing "*" allows the word to continue, so
"domino*" matches "DOMINOS". Edges that are not letters or digits are
matched literally.
"""

import re
from dataclasses import dataclass
from enum import Enum

FOOD_AND_DINING = "Food & Dining"
GROCERIES = "Groceries"
TRANSPORTATION = "Transportation"
FUEL = "Fuel"
SHOPPING = "Shopping"
HEALTHCARE = "Healthcare"
UTILITIES = "Utilities"
ENTERTAINMENT = "Entertainment"
TRAVEL = "Travel"
FITNESS = "Fitness"
EDUCATION = "Education"
FEES = "Fees & Charges"
UPI = "UPI"
OTHER = "Other"

CATEGORIES = (
    FOOD_AND_DINING,
    GROCERIES,
    TRANSPORTATION,
    FUEL,
    SHOPPING,
    HEALTHCARE,
    UTILITIES,
    ENTERTAINMENT,
    TRAVEL,
    FITNESS,
    EDUCATION,
    FEES,
    UPI,
    OTHER,
)

DEFAULT_ICON = "creditcard.fill"


class RuleKind(Enum):
    """Rule kinds, in resolution priority."""

    AGGREGATOR = 1
    BRAND = 2
    GENERIC = 3
    RAIL = 4


@dataclass(frozen=True)
class MerchantRule:
    """One keyword rule mapping a description to a merchant and category."""

    kind: RuleKind
    merchant: str | None
    category: str
    any_of: tuple[str, ...]
    all_of: tuple[str, ...] = ()
    none_of: tuple[str, ...] = ()
    recurring: bool = False
    icon: str = DEFAULT_ICON

    def matches(self, text: str) -> bool:
        """Check the rule against normalized (lower-cased, collapsed) text."""
        if not any(contains_keyword(text, kw) for kw in self.any_of):
            return False
        if not all(contains_keyword(text, kw) for kw in self.all_of):
            return False
        return not any(contains_keyword(text, kw) for kw in self.none_of)


def normalize_text(text: str) -> str:
    return " ".join(text.split()).lower()


def contains_keyword(text: str, keyword: str) -> bool:
    prefix = keyword.endswith("*")
    word = keyword[:-1] if prefix else keyword
    pattern = re.escape(word)
    if word[0].isalnum():
        pattern = rf"(?<![a-z0-9]){pattern}"
    if word[-1].isalnum() and not prefix:
        pattern = rf"{pattern}(?![a-z0-9])"
    return re.search(pattern, text) is not None


_A, _B, _G, _R = RuleKind.AGGREGATOR, RuleKind.BRAND, RuleKind.GENERIC, RuleKind.RAIL

# Ordering matters within a kind: earlier matches win.
RULES: tuple[MerchantRule, ...] = (
    # Platforms that wrap another merchant's goods
    MerchantRule(_A, "Swiggy Instamart", GROCERIES, ("instamart*",), icon="basket.fill"),
    MerchantRule(_A, "Swiggy", FOOD_AND_DINING, ("swiggy*",), icon="takeoutbag.and.cup.and.straw.fill"),
    MerchantRule(_A, "Zomato", FOOD_AND_DINING, ("zomato*",), icon="fork.knife"),
    MerchantRule(_A, "Uber Eats", FOOD_AND_DINING, ("uber eats", "ubereats"), icon="fork.knife"),
    MerchantRule(_A, "Amazon", SHOPPING, ("amazon*", "amzn*"), none_of=("prime",), icon="cart.fill"),
    MerchantRule(_A, "Flipkart", SHOPPING, ("flipkart*",), icon="bag.fill"),
    MerchantRule(_A, "Blinkit", GROCERIES, ("blinkit*", "grofers"), icon="basket.fill"),
    MerchantRule(_A, "Zepto", GROCERIES, ("zepto*",), icon="basket.fill"),
    MerchantRule(_A, "BigBasket", GROCERIES, ("bigbasket*", "big basket"), icon="basket.fill"),
    MerchantRule(_A, "MakeMyTrip", TRAVEL, ("makemytrip*",), icon="airplane"),
    # Brands
    MerchantRule(_B, "KFC", FOOD_AND_DINING, ("kfc",), icon="fork.knife"),
    MerchantRule(_B, "Domino's", FOOD_AND_DINING, ("domino*",), icon="fork.knife"),
    MerchantRule(_B, "McDonald's", FOOD_AND_DINING, ("mcdonald*",), icon="fork.knife"),
    MerchantRule(_B, "Pizza Hut", FOOD_AND_DINING, ("pizza hut", "pizzahut"), icon="fork.knife"),
    MerchantRule(_B, "Burger King", FOOD_AND_DINING, ("burger king",), icon="fork.knife"),
    MerchantRule(_B, "Starbucks", FOOD_AND_DINING, ("starbucks*",), icon="cup.and.saucer.fill"),
    MerchantRule(_B, "Chaayos", FOOD_AND_DINING, ("chaayos",), icon="cup.and.saucer.fill"),
    MerchantRule(_B, "Cafe Coffee Day", FOOD_AND_DINING, ("cafe coffee day", "ccd "), icon="cup.and.saucer.fill"),
    MerchantRule(_B, "DMart", GROCERIES, ("dmart*", "avenue supermarts"), icon="basket.fill"),
    MerchantRule(_B, "Reliance Fresh", GROCERIES, ("reliance fresh",), icon="basket.fill"),
    MerchantRule(_B, "Nature's Basket", GROCERIES, ("natures basket", "nature's basket"), icon="basket.fill"),
    MerchantRule(_B, "Licious", GROCERIES, ("licious",), icon="basket.fill"),
    MerchantRule(_B, "Country Delight", GROCERIES, ("country delight",), icon="basket.fill"),
    MerchantRule(_B, "HPCL", FUEL, ("hpcl*", "hindustan petroleum"), icon="fuelpump.fill"),
    MerchantRule(_B, "IOCL", FUEL, ("iocl*", "indian oil"), icon="fuelpump.fill"),
    MerchantRule(_B, "BPCL", FUEL, ("bpcl*", "bharat petroleum"), icon="fuelpump.fill"),
    MerchantRule(_B, "Shell", FUEL, ("shell",), icon="fuelpump.fill"),
    MerchantRule(_B, "Reliance Petroleum", FUEL, ("reliance petroleum", "jio-bp", "jio bp"), icon="fuelpump.fill"),
    MerchantRule(_B, "Uber", TRANSPORTATION, ("uber*",), none_of=("uber eats", "ubereats"), icon="car.fill"),
    MerchantRule(_B, "Ola", TRANSPORTATION, ("ola", "olacabs"), icon="car.fill"),
    MerchantRule(_B, "Rapido", TRANSPORTATION, ("rapido*",), icon="car.fill"),
    MerchantRule(_B, "IRCTC", TRAVEL, ("irctc*",), icon="tram.fill"),
    MerchantRule(_B, "RedBus", TRAVEL, ("redbus*",), icon="bus.fill"),
    MerchantRule(_B, "Metro", TRANSPORTATION, ("metro rail", "dmrc", "bmrcl"), icon="tram.fill"),
    MerchantRule(_B, "Myntra", SHOPPING, ("myntra*",), icon="bag.fill"),
    MerchantRule(_B, "Ajio", SHOPPING, ("ajio",), icon="bag.fill"),
    MerchantRule(_B, "Nykaa", SHOPPING, ("nykaa*",), icon="bag.fill"),
    MerchantRule(_B, "Meesho", SHOPPING, ("meesho*",), icon="bag.fill"),
    MerchantRule(_B, "Tata CLiQ", SHOPPING, ("tata cliq", "tatacliq"), icon="bag.fill"),
    MerchantRule(_B, "IKEA", SHOPPING, ("ikea",), icon="bag.fill"),
    MerchantRule(_B, "Apollo Pharmacy", HEALTHCARE, ("apollo*",), icon="cross.case.fill"),
    MerchantRule(_B, "MedPlus", HEALTHCARE, ("medplus*",), icon="cross.case.fill"),
    MerchantRule(_B, "Netmeds", HEALTHCARE, ("netmeds*",), icon="cross.case.fill"),
    MerchantRule(_B, "PharmEasy", HEALTHCARE, ("pharmeasy*",), icon="cross.case.fill"),
    MerchantRule(_B, "Tata 1mg", HEALTHCARE, ("1mg",), icon="cross.case.fill"),
    MerchantRule(_B, "Practo", HEALTHCARE, ("practo",), icon="cross.case.fill"),
    MerchantRule(_B, "Airtel", UTILITIES, ("airtel*",), recurring=True, icon="antenna.radiowaves.left.and.right"),
    MerchantRule(_B, "Jio", UTILITIES, ("jio",), recurring=True, icon="antenna.radiowaves.left.and.right"),
    MerchantRule(_B, "Vodafone Idea", UTILITIES, ("vodafone*", "vi postpaid"), recurring=True, icon="antenna.radiowaves.left.and.right"),
    MerchantRule(_B, "BSNL", UTILITIES, ("bsnl",), recurring=True, icon="antenna.radiowaves.left.and.right"),
    MerchantRule(_B, "Netflix", ENTERTAINMENT, ("netflix*",), recurring=True, icon="play.tv.fill"),
    MerchantRule(_B, "Amazon Prime", ENTERTAINMENT, ("amazon prime", "prime video"), recurring=True, icon="play.tv.fill"),
    MerchantRule(_B, "Hotstar", ENTERTAINMENT, ("hotstar*",), recurring=True, icon="play.tv.fill"),
    MerchantRule(_B, "Spotify", ENTERTAINMENT, ("spotify*",), recurring=True, icon="music.note"),
    MerchantRule(_B, "YouTube Premium", ENTERTAINMENT, ("youtube*",), recurring=True, icon="play.tv.fill"),
    MerchantRule(_B, "BookMyShow", ENTERTAINMENT, ("bookmyshow*",), icon="ticket.fill"),
    MerchantRule(_B, "PVR INOX", ENTERTAINMENT, ("pvr*", "inox"), icon="film.fill"),
    MerchantRule(_B, "Cult.fit", FITNESS, ("cult.fit", "cultfit", "curefit"), recurring=True, icon="figure.walk"),
    # Generic category keywords
    MerchantRule(_G, None, FOOD_AND_DINING, ("restaurant*", "cafe", "bakery", "dhaba", "food*"), icon="fork.knife"),
    MerchantRule(_G, None, GROCERIES, ("grocer*", "supermarket*", "kirana", "fresh"), icon="basket.fill"),
    MerchantRule(_G, None, FUEL, ("petrol", "fuel", "diesel", "filling station"), icon="fuelpump.fill"),
    MerchantRule(_G, None, HEALTHCARE, ("pharmacy", "chemist*", "hospital*", "clinic*", "diagnostic*"), icon="cross.case.fill"),
    MerchantRule(_G, None, UTILITIES, ("electricity", "water bill", "gas bill", "broadband", "recharge", "mobile bill"), icon="bolt.fill"),
    MerchantRule(_G, None, TRAVEL, ("hotel*", "airline*", "airways", "airport"), icon="airplane"),
    MerchantRule(_G, None, FITNESS, ("gym", "fitness", "yoga"), icon="figure.walk"),
    MerchantRule(_G, None, EDUCATION, ("school*", "college*", "university", "tuition*", "course*"), icon="book.fill"),
    MerchantRule(_G, None, FEES, ("late fee", "annual fee", "finance charge", "gst", "surcharge"), icon="exclamationmark.circle.fill"),
    # Payment rails; only decide the category when nothing else matched
    MerchantRule(_R, None, UPI, ("upi", "vpa", "@ok", "@ybl", "@paytm"), icon="indianrupeesign.circle.fill"),
)


def first_match(text: str, kind: RuleKind) -> MerchantRule | None:
    """Return the first rule of a kind matching normalized text."""
    for rule in RULES:
        if rule.kind == kind and rule.matches(text):
            return rule
    return None


# Keyword hints for merchants that no rule names
_ICON_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("grocery", "mart", "basket"), "basket.fill"),
    (("pharma", "medical", "health"), "cross.case.fill"),
    (("fuel", "petrol"), "fuelpump.fill"),
    (("cab", "taxi"), "car.fill"),
    (("gym", "fitness"), "figure.walk"),
    (("cafe", "coffee"), "cup.and.saucer.fill"),
    (("restaurant", "kitchen", "food"), "fork.knife"),
)


def icon_for(merchant: str) -> str:
    """
    Icon hint for a merchant name.

    Args:
        merchant: Canonical merchant or grouping name

    Returns:
        SF Symbol-style icon name, DEFAULT_ICON when nothing matches
    """
    text = normalize_text(merchant)
    if not text:
        return DEFAULT_ICON

    for kind in (RuleKind.AGGREGATOR, RuleKind.BRAND):
        for rule in RULES:
            if rule.kind == kind and rule.merchant and normalize_text(rule.merchant) == text:
                return rule.icon

    for kind in (RuleKind.AGGREGATOR, RuleKind.BRAND):
        rule = first_match(text, kind)
        if rule is not None:
            return rule.icon

    for keywords, icon in _ICON_HINTS:
        if any(kw in text for kw in keywords):
            return icon

    return DEFAULT_ICON
