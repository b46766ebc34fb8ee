from gigsync.models import Venue

VENUES = {
    "moody-center": Venue("moody-center", "Moody Center", address="2001 Robert Dedman Dr", lat=30.2820, lng=-97.7328),
    "paramount-theatre": Venue("paramount-theatre", "Paramount Theatre", address="713 Congress Ave", lat=30.2672, lng=-97.7417),
    "acl-live": Venue("acl-live", "ACL Live at The Moody Theater", address="310 W Willie Nelson Blvd", lat=30.2652, lng=-97.7519),
    "stubbs": Venue("stubbs", "Stubb's BBQ", address="801 Red River St", lat=30.2694, lng=-97.7368),
    "bass-concert-hall": Venue("bass-concert-hall", "Bass Concert Hall", address="2350 Robert Dedman Dr", lat=30.2859, lng=-97.7304),
    "long-center": Venue("long-center", "Long Center", address="701 W Riverside Dr", lat=30.2594, lng=-97.7505),
    "antones": Venue("antones", "Antone's Nightclub", address="305 E 5th St", lat=30.2671, lng=-97.7395),
    "radio-east": Venue("radio-east", "Radio East", address="3504 Montopolis Dr", lat=30.2292, lng=-97.7089),
    "empire-control-room": Venue("empire-control-room", "Empire Control Room & Garage", address="606 E 7th St", lat=30.2641, lng=-97.7347),
    "moody-amphitheater": Venue("moody-amphitheater", "Moody Amphitheater", address="1401 Trinity St", lat=30.2733, lng=-97.7362),
}
