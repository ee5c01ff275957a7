CREATE_GUEST_URL = "/api/v1/events/{event_id}/guests"
UPDATE_RSVP_URL = "/api/v1/guests/{guest_id}/rsvp"
