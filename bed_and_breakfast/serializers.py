from rest_framework import serializers

from .models import Room

DATE_INPUT_FORMATS = ["%Y-%m-%d"]


class RoomSerializer(serializers.ModelSerializer):

    class Meta:
        model = Room
        fields = ["id", "room_name", "slug"]


class DateRangeSerializer(serializers.Serializer):
    start_date = serializers.DateField(input_formats=DATE_INPUT_FORMATS)
    end_date = serializers.DateField(input_formats=DATE_INPUT_FORMATS)

    def validate(self, data):
        if data["end_date"] <= data["start_date"]:
            raise serializers.ValidationError("end_date must be after start_date")
        return data


class RoomAvailabilitySerializer(DateRangeSerializer):
    room_id = serializers.IntegerField(min_value=1)


class AvailabilityResponseSerializer(serializers.Serializer):
    ok = serializers.BooleanField()
    message = serializers.CharField(allow_blank=True)
    room_id = serializers.CharField(allow_blank=True)
    start_date = serializers.CharField(allow_blank=True)
    end_date = serializers.CharField(allow_blank=True)
