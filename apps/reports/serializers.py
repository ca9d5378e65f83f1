from rest_framework import serializers


class ReportQuerySerializer(serializers.Serializer):
    """
    Query parameters shared by the reports: an optional date range and the
    date the book is judged against
    """
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    today = serializers.DateField(required=False)
    days = serializers.IntegerField(required=False, min_value=1, max_value=365, default=7)
    customer = serializers.IntegerField(required=False, min_value=1)

    def validate(self, attrs):
        date_from = attrs.get('date_from')
        date_to = attrs.get('date_to')

        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError("Start date must be before end date")

        return attrs

    @classmethod
    def from_request(cls, request):
        # ``from`` is a Python keyword, so the query names are mapped here
        data = request.query_params.dict()
        if 'from' in data:
            data['date_from'] = data.pop('from')
        if 'to' in data:
            data['date_to'] = data.pop('to')
        return cls(data=data)
