"""Vendor payloads trimmed from real responses, returned fresh per call."""


def redfin_active_home() -> dict:
    return {
        "homeData": {
            "propertyId": "12345",
            "addressInfo": {
                "formattedStreetLine": "12 Maple Ave",
                "city": "Bedford",
                "state": "NY",
                "zip": "10506",
                "centroid": {"centroid": {"latitude": 41.2, "longitude": -73.64}},
            },
            "priceInfo": {"amount": 1250000},
            "beds": 4,
            "baths": 3.5,
            "sqftInfo": {"amount": 3200},
            "lotSize": {"amount": 87120},
            "yearBuilt": {"yearBuilt": 1985},
            "propertyType": 6,
            "url": "/NY/Bedford/12-Maple-Ave-10506/home/12345",
            # An old sale on a home that is listed again
            "lastSaleData": {"lastSoldPrice": 900000, "lastSoldDate": "2015-04-01"},
        },
        "listingData": {"listingDate": "2024-05-01"},
    }


def redfin_sold_home() -> dict:
    return {
        "homeData": {
            "propertyId": "777",
            "addressInfo": {
                "formattedStreetLine": "4 Oak Ln",
                "city": "Chappaqua",
                "state": "NY",
            },
            "beds": 3,
            "baths": 2,
            "lastSaleData": {
                "lastSoldPrice": 1100000,
                "lastSoldDate": "2024-03-15T00:00:00Z",
            },
        },
    }


def attom_property() -> dict:
    # ATTOM is inconsistent about key casing; keep the lowercase variants here
    return {
        "identifier": {"attomId": 184713191},
        "address": {
            "line1": "185 HARRIMAN RD",
            "locality": "BEDFORD",
            "countrySubd": "NY",
            "postal1": "10506",
            "oneLine": "185 HARRIMAN RD, BEDFORD, NY 10506",
        },
        "location": {"latitude": "41.219", "longitude": "-73.650"},
        "summary": {"propclass": "Single Family Residence / Townhouse", "yearbuilt": 1962},
        "building": {
            "rooms": {"beds": 4, "bathstotal": 3.0},
            "size": {"universalsize": 2850},
        },
        "lot": {"lotsize1": 2.1, "lotsize2": 91476},
        "sale": {"saleTransDate": "2024-06-01", "amount": {"saleamt": 999000}},
        "avm": {"amount": {"value": 1050000}},
    }


SEARCH_PAGE_WITH_STATE = """
<html><head><script>
window.__reactServerState.InitialContext = {"searchPageState": {"homes": {"homes": [
  {"propertyId": 31, "streetLine": {"value": "9 Elm St"}, "city": "Bedford", "state": "NY",
   "zip": "10506", "price": {"value": 1500000}, "beds": 5, "baths": 4,
   "sqft": {"value": 4100}, "url": "/NY/Bedford/9-Elm-St-10506/home/31",
   "listingStatus": "Active"}
]}}};
</script></head><body></body></html>
"""

SEARCH_PAGE_WITH_CARDS = """
<html><body>
<div class="bp-Homecard">
  <a href="/NY/Chappaqua/4-Oak-Ln-10514/home/777">photo</a>
  <div class="bp-Homecard__Price--value">$1,250,000</div>
  <div class="bp-Homecard__Stats--beds">4 beds</div>
  <div class="bp-Homecard__Stats--baths">2.5 baths</div>
  <div class="bp-Homecard__Stats--sqft">2,900 sq ft</div>
</div>
</body></html>
"""

SEARCH_PAGE_WITH_LINKS = """
<html><body>
<a href="/NY/Mount-Kisco/22-Main-St-10549/home/555">22 Main St</a>
<a href="/NY/Mount-Kisco/22-Main-St-10549/home/555">View</a>
<a href="/NY/Bedford/not-a-home">Elsewhere</a>
</body></html>
"""

PROPERTY_PAGE = """
<html><body>
<div class="PropertyHistoryEventRow">
  <div class="date-col">Jun 1, 2024</div>
  <div class="event-col">Sold (Public Records)</div>
  <div class="price-col">$999,000</div>
</div>
<div class="PropertyHistoryEventRow">
  <div class="date-col">Apr 2, 2024</div>
  <div class="event-col">Listed</div>
  <div class="price-col">$899,000</div>
</div>
<div class="PropertyHistoryEventRow">
  <div class="date-col">May 10, 2010</div>
  <div class="event-col">Sold (Public Records)</div>
  <div class="price-col">$500,000</div>
</div>
</body></html>
"""

RELISTED_PROPERTY_PAGE = """
<html><body>
<div class="PropertyHistoryEventRow">
  <div class="date-col">Sep 3, 2024</div>
  <div class="event-col">Listed</div>
  <div class="price-col">$1,195,000</div>
</div>
<div class="PropertyHistoryEventRow">
  <div class="date-col">Jul 1, 2015</div>
  <div class="event-col">Sold</div>
  <div class="price-col">$840,000</div>
</div>
</body></html>
"""
